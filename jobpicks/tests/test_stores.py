"""Tests for the site-scoped store."""

from __future__ import annotations

import threading

import pytest

from assignment_core.models import Driver, Job, ManualAssignment, PreferenceSubmission, SiteScope, Snapshot
from jobpicks import stores
from jobpicks.config import SiteSettings
from jobpicks.errors import NotFoundError, ResolutionUnavailable, ValidationError
from jobpicks.storage import site_state_path
from jobpicks.stores import SiteStore

JAX = SiteScope("UPS", "JACFL")
ORL = SiteScope("UPS", "ORLFL")


@pytest.fixture
def store():
    s = SiteStore()
    s.add_driver(JAX, Driver("1000001", "Al", 1, airport_certified=True))
    s.add_driver(JAX, Driver("1000002", "Bea", 2))
    s.add_driver(JAX, Driver("1000003", "Cy", 3, is_eligible=False))
    s.add_job(JAX, Job("J1", "06:00", "Mon-Fri"))
    s.add_job(JAX, Job("J2", "05:00", "Sat-Sun", is_airport=True))
    s.add_job(JAX, Job("J3", "07:00", "Mon-Fri"))
    return s


class TestScoping:
    def test_sites_are_isolated(self, store):
        assert store.get_drivers(ORL) == []
        assert len(store.get_drivers(JAX)) == 3

    def test_records_stamped_with_scope(self, store):
        assert store.get_drivers(JAX)[0].company_id == "UPS"
        assert store.get_jobs(JAX)[0].site_id == "JACFL"

    def test_record_from_other_site_rejected(self, store):
        with pytest.raises(ValidationError, match="does not match scope"):
            store.add_driver(JAX, Driver("1000009", "Zed", 9, site_id="ORLFL"))

    def test_scope_required(self, store):
        with pytest.raises(ValidationError):
            store.get_drivers(SiteScope("UPS", ""))


class TestRosterWrites:
    def test_employee_id_must_be_seven_digits(self, store):
        with pytest.raises(ValidationError, match="7 digits"):
            store.add_driver(JAX, Driver("12345", "Short", 4))

    def test_duplicate_driver(self, store):
        with pytest.raises(ValidationError, match="already exists"):
            store.add_driver(JAX, Driver("1000001", "Again", 9))

    def test_update_missing_driver(self, store):
        with pytest.raises(NotFoundError):
            store.update_driver(JAX, Driver("1000009", "Nobody", 9))

    def test_update_and_delete_driver(self, store):
        store.update_driver(JAX, Driver("1000002", "Bea", 2, vc_status=True))
        assert next(d for d in store.get_drivers(JAX) if d.employee_id == "1000002").vc_status
        store.delete_driver(JAX, "1000002")
        assert "1000002" not in {d.employee_id for d in store.get_drivers(JAX)}
        with pytest.raises(NotFoundError):
            store.delete_driver(JAX, "1000002")

    def test_bad_start_time(self, store):
        with pytest.raises(ValidationError, match="HH:MM"):
            store.add_job(JAX, Job("J9", "25:00"))

    def test_duplicate_and_missing_job(self, store):
        with pytest.raises(ValidationError):
            store.add_job(JAX, Job("J1"))
        with pytest.raises(NotFoundError):
            store.update_job(JAX, Job("J9"))
        with pytest.raises(NotFoundError):
            store.delete_job(JAX, "J9")

    def test_drivers_sorted_by_seniority(self, store):
        store.add_driver(JAX, Driver("1000000", "Zero", 0))
        assert [d.seniority_number for d in store.get_drivers(JAX)] == [0, 1, 2, 3]


class TestPreferences:
    def test_latest_submission_kept(self, store):
        store.submit_preferences(JAX, "1000002", ["J1"], "2025-01-01T00:00:00Z")
        store.submit_preferences(JAX, "1000002", ["J3", "J1"], "2025-01-02T00:00:00Z")
        latest = store.get_latest_preferences(JAX)
        assert latest["1000002"].ordered_job_ids == ("J3", "J1")
        assert len(store.get_submissions(JAX)) == 2

    def test_submission_time_defaulted(self, store):
        sub = store.submit_preferences(JAX, "1000002", ["J1"])
        assert sub.submission_time.endswith("Z")

    def test_rejects_unknown_driver_job_and_duplicates(self, store):
        with pytest.raises(ValidationError, match="Unknown driver"):
            store.submit_preferences(JAX, "1000009", ["J1"])
        with pytest.raises(ValidationError, match="Unknown jobs"):
            store.submit_preferences(JAX, "1000002", ["J9"])
        with pytest.raises(ValidationError, match="Duplicate"):
            store.submit_preferences(JAX, "1000002", ["J1", "J1"])


class TestManualAssignments:
    def test_pin_and_replace(self, store):
        store.set_manual_assignment(JAX, "1000001", "J1")
        store.set_manual_assignment(JAX, "1000002", "J1")
        assert store.get_manual_assignments(JAX) == [ManualAssignment("1000002", "J1")]

    def test_pin_rules(self, store):
        with pytest.raises(ValidationError, match="not eligible"):
            store.set_manual_assignment(JAX, "1000003", "J1")
        with pytest.raises(ValidationError, match="airport certified"):
            store.set_manual_assignment(JAX, "1000002", "J2")
        with pytest.raises(ValidationError, match="Unknown job"):
            store.set_manual_assignment(JAX, "1000002", "J9")
        store.set_manual_assignment(JAX, "1000002", "J1")
        with pytest.raises(ValidationError, match="already pinned"):
            store.set_manual_assignment(JAX, "1000002", "J3")

    def test_batch_conflict_is_all_or_nothing(self, store):
        pins = [ManualAssignment("1000001", "J1"), ManualAssignment("1000002", "J1")]
        with pytest.raises(ValidationError, match="Conflicting"):
            store.set_manual_assignments(JAX, pins)
        assert store.get_manual_assignments(JAX) == []

    def test_batch(self, store):
        saved = store.set_manual_assignments(
            JAX, [ManualAssignment("1000002", "J3"), ManualAssignment("1000001", "J2")],
        )
        assert [(p.driver_id, p.job_id) for p in saved] == [("1000001", "J2"), ("1000002", "J3")]

    def test_delete_job_drops_its_pin(self, store):
        store.set_manual_assignment(JAX, "1000002", "J1")
        store.delete_job(JAX, "J1")
        assert store.get_manual_assignments(JAX) == []

    def test_remove_missing_pin(self, store):
        with pytest.raises(NotFoundError):
            store.remove_manual_assignment(JAX, "J1")


class TestToggleAndVersion:
    def test_default_toggle_from_settings(self):
        s = SiteStore(settings={"UPS/ORLFL": SiteSettings(auto_assign_enabled=False)})
        assert s.get_auto_assign_toggle(ORL) is False
        assert s.get_auto_assign_toggle(JAX) is True

    def test_version_moves_on_writes(self, store):
        v = store.version(JAX)
        store.set_auto_assign(JAX, False)
        assert store.version(JAX) == v + 1
        assert store.get_auto_assign_toggle(JAX) is False

    def test_failed_write_does_not_bump_version(self, store):
        v = store.version(JAX)
        with pytest.raises(ValidationError):
            store.add_job(JAX, Job("J1"))
        assert store.version(JAX) == v


class TestSnapshot:
    def test_snapshot_contents(self, store):
        store.set_manual_assignment(JAX, "1000002", "J1")
        snap = store.snapshot(JAX)
        assert snap.scope == JAX
        assert len(snap.drivers) == 3
        assert snap.manual_assignments == (ManualAssignment("1000002", "J1"),)
        assert snap.meta["version"] == store.version(JAX)

    def test_snapshot_consistent_under_concurrent_writes(self, store):
        errors = []

        def writer():
            for i in range(50):
                store.add_job(JAX, Job(f"X{i:03d}"))

        def reader():
            for _ in range(50):
                snap = store.snapshot(JAX)
                if snap.meta["version"] - len(snap.jobs) != store_base:
                    errors.append(snap.meta["version"])

        store_base = store.version(JAX) - len(store.get_jobs(JAX))
        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []


class TestPersistence:
    def test_state_survives_restart(self, tmp_path):
        first = SiteStore(tmp_path)
        first.add_driver(JAX, Driver("1000001", "Al", 1))
        first.add_job(JAX, Job("J1", "06:00"))
        first.submit_preferences(JAX, "1000001", ["J1"], "2025-01-01T00:00:00Z")
        first.set_manual_assignment(JAX, "1000001", "J1")

        second = SiteStore(tmp_path)
        assert second.snapshot(JAX) == first.snapshot(JAX)
        assert second.version(JAX) == first.version(JAX)

    def test_corrupt_state_is_retryable_failure(self, tmp_path):
        path = site_state_path(tmp_path, JAX)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ResolutionUnavailable):
            SiteStore(tmp_path).snapshot(JAX)

    def test_failed_save_leaves_site_unchanged(self, tmp_path, monkeypatch):
        s = SiteStore(tmp_path)
        s.add_job(JAX, Job("J1", "06:00"))

        def fail(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(stores, "save_site_state", fail)
        with pytest.raises(OSError):
            s.add_job(JAX, Job("J2", "07:00"))
        with pytest.raises(OSError):
            s.set_auto_assign(JAX, False)

        assert [j.job_id for j in s.get_jobs(JAX)] == ["J1"]
        assert s.get_auto_assign_toggle(JAX) is True
        assert s.version(JAX) == 1
        monkeypatch.undo()
        assert SiteStore(tmp_path).snapshot(JAX) == s.snapshot(JAX)


def _import(**overrides) -> Snapshot:
    fields = dict(
        scope=JAX,
        drivers=(
            Driver("2000001", "Ann", 1, airport_certified=True),
            Driver("2000002", "Bo", 2),
            Driver("2000003", "Cal", 3, is_eligible=False),
        ),
        jobs=(Job("K1", "06:00"), Job("K2", "05:00", is_airport=True), Job("K3", "07:00")),
        submissions=(PreferenceSubmission("2000002", ("K1", "K9"), "2025-01-01T00:00:00Z"),),
        manual_assignments=(ManualAssignment("2000001", "K2"),),
        auto_assign_enabled=False,
    )
    fields.update(overrides)
    return Snapshot(**fields)


class TestReplaceSite:
    def test_import_replaces_contents(self, store):
        before = store.version(JAX)
        version = store.replace_site(JAX, _import())
        assert version == before + 1 == store.version(JAX)
        assert [d.employee_id for d in store.get_drivers(JAX)] == ["2000001", "2000002", "2000003"]
        assert [j.job_id for j in store.get_jobs(JAX)] == ["K1", "K2", "K3"]
        assert store.get_manual_assignments(JAX) == [ManualAssignment("2000001", "K2")]
        assert store.get_latest_preferences(JAX)["2000002"].ordered_job_ids == ("K1", "K9")
        assert store.get_auto_assign_toggle(JAX) is False

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"manual_assignments": (ManualAssignment("9999999", "K1"),)}, "Unknown driver"),
            ({"manual_assignments": (ManualAssignment("2000002", "K9"),)}, "Unknown job"),
            ({"manual_assignments": (ManualAssignment("2000003", "K1"),)}, "not eligible"),
            ({"manual_assignments": (ManualAssignment("2000002", "K2"),)}, "not airport certified"),
            (
                {"manual_assignments": (ManualAssignment("2000002", "K1"), ManualAssignment("2000002", "K3"))},
                "more than one job",
            ),
            (
                {"manual_assignments": (ManualAssignment("2000001", "K1"), ManualAssignment("2000002", "K1"))},
                "Conflicting pins",
            ),
            (
                {"submissions": (PreferenceSubmission("9999999", ("K1",), "2025-01-01T00:00:00Z"),)},
                "unknown driver",
            ),
            (
                {"submissions": (PreferenceSubmission("2000002", ("K1", "K1"), "2025-01-01T00:00:00Z"),)},
                "Duplicate jobs",
            ),
            ({"jobs": (Job("K1", "06:00"), Job("K1", "07:00"))}, "Duplicate job"),
        ],
    )
    def test_invalid_import_rejected(self, store, overrides, message):
        with pytest.raises(ValidationError, match=message):
            store.replace_site(JAX, _import(**overrides))

    def test_rejected_import_leaves_site_unchanged(self, store):
        store.set_manual_assignment(JAX, "1000002", "J1")
        before = store.snapshot(JAX)
        version = store.version(JAX)
        bad = _import(manual_assignments=(ManualAssignment("2000002", "K2"),))
        with pytest.raises(ValidationError):
            store.replace_site(JAX, bad)
        assert store.version(JAX) == version
        assert store.snapshot(JAX) == before
