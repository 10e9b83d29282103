"""Tests for the reporting projections."""

import pytest

from assignment_core.models import (
    AIRPORT_AUTO,
    MANUAL,
    PREFERENCE,
    SENIORITY,
    Assignment,
    Driver,
    Job,
    Resolution,
)
from assignment_core.reporting import (
    AUTO,
    FIRST_CHOICE,
    OTHER_PICK,
    STATUS_EMPTY,
    STATUS_RESOLVED,
    TYPE_LABELS,
    assignment_rows,
    classify_assignment,
    site_statistics,
    summarize_resolution,
)


@pytest.fixture
def drivers():
    return [
        Driver("D2", "Bea", 2, vc_status=True),
        Driver("D1", "Al", 1, airport_certified=True),
        Driver("D3", "Cy", 3),
        Driver("D4", "Di", 4),
    ]


@pytest.fixture
def jobs():
    return [
        Job("J1", start_time="06:00", week_days="Mon-Fri"),
        Job("J2", start_time="11:00", week_days="Sat,Sun", is_airport=True),
        Job("J3", start_time="16:30", week_days="Fri-Mon"),
        Job("J4", start_time="22:00", week_days="Wed"),
    ]


@pytest.fixture
def prefs():
    return {"D1": ["J2", "J1"], "D2": ["J3", "J1"], "D3": ["J4"]}


@pytest.fixture
def resolution():
    return Resolution(
        assignments=(
            Assignment("D2", "J1", MANUAL),
            Assignment("D1", "J2", PREFERENCE),
            Assignment("D3", "J3", SENIORITY),
        ),
        unassigned_driver_ids=("D4",),
        open_job_ids=("J4",),
    )


class TestClassification:
    def test_first_choice(self, prefs):
        assert classify_assignment(Assignment("D1", "J2", PREFERENCE), prefs) == FIRST_CHOICE

    def test_other_pick_even_for_manual(self, prefs):
        assert classify_assignment(Assignment("D2", "J1", MANUAL), prefs) == OTHER_PICK

    def test_auto_when_not_in_list(self, prefs):
        assert classify_assignment(Assignment("D3", "J3", SENIORITY), prefs) == AUTO
        assert classify_assignment(Assignment("D9", "J3", AIRPORT_AUTO), prefs) == AUTO

    def test_labels(self):
        assert TYPE_LABELS[PREFERENCE] == "Pick"
        assert TYPE_LABELS["vc-assigned"] == "Auto"
        assert TYPE_LABELS["airport-driver-pool"] == "Airport Driver Pool"


class TestAssignmentRows:
    def test_sorted_by_seniority_with_joined_fields(self, resolution, drivers, jobs, prefs):
        rows = assignment_rows(resolution, drivers, jobs, prefs)
        assert [r["driver_id"] for r in rows] == ["D1", "D2", "D3"]
        first = rows[0]
        assert first["driver_name"] == "Al"
        assert first["is_airport"] is True
        assert first["type_label"] == "Pick"
        assert first["classification"] == FIRST_CHOICE
        assert first["preference_rank"] == 1
        assert rows[1]["preference_rank"] == 2
        assert rows[2]["preference_rank"] is None

    def test_unknown_records_kept_last(self, drivers, jobs):
        res = Resolution((Assignment("GHOST", "J1", MANUAL), Assignment("D1", "J2", MANUAL)), (), ())
        rows = assignment_rows(res, drivers, jobs)
        assert [r["driver_id"] for r in rows] == ["D1", "GHOST"]
        assert rows[1]["driver_name"] == ""


class TestSummary:
    def test_counts_and_rates(self, resolution, drivers, jobs, prefs):
        s = summarize_resolution(resolution, drivers, jobs, prefs)
        assert s["status"] == STATUS_RESOLVED
        assert s["total_assignments"] == 3
        assert s["by_type"][MANUAL] == 1
        assert s["by_type"][AIRPORT_AUTO] == 0
        assert s["by_classification"] == {FIRST_CHOICE: 1, OTHER_PICK: 1, AUTO: 1}
        assert s["first_choice_rate"] == 33
        assert s["any_pick_rate"] == 67
        # D1 and D2 got a top-3 pick; D3 did not.
        assert s["satisfaction_rate"] == 67
        assert s["unresolved"]["open_job_ids"] == ["J4"]
        assert s["unresolved"]["unassigned_driver_ids"] == ["D4"]
        assert s["unresolved"]["open_airport_jobs"] == 0
        assert s["drivers_without_picks"] == ["D4"]

    def test_empty_is_not_an_error(self, drivers, jobs):
        s = summarize_resolution(Resolution((), (), ("J1",)), drivers, jobs, {})
        assert s["status"] == STATUS_EMPTY
        assert s["first_choice_rate"] == 0
        assert s["satisfaction_rate"] == 0


class TestSiteStatistics:
    def test_distributions(self, drivers, jobs, prefs):
        stats = site_statistics(drivers, jobs, prefs)
        assert stats["total_drivers"] == 4
        assert stats["submitted_preferences"] == 3
        assert stats["submission_rate"] == 75
        assert stats["airport_jobs"] == 1
        assert stats["vc_drivers"] == 1
        assert stats["start_time_distribution"] == {"05-10": 1, "10-15": 1, "15-20": 1, "other": 1}
        assert stats["weekday_distribution"] == {
            "mon": 2, "tue": 1, "wed": 2, "thu": 1, "fri": 2, "sat": 2, "sun": 2,
        }
