"""Tests for strategy comparison."""

from assignment_core.comparison import compare_resolutions
from assignment_core.mechanisms import run_all
from assignment_core.models import Assignment, Driver, Job, Resolution, SiteScope, Snapshot


class TestCompareResolutions:
    def test_agreement_classes(self):
        a = Resolution(
            (Assignment("D1", "J1", "preference"), Assignment("D2", "J2", "vc-assigned")),
            ("D3",), ("J3",),
        )
        b = Resolution(
            (Assignment("D1", "J1", "preference"), Assignment("D2", "J3", "seniority")),
            ("D3",), ("J2",),
            strategy="seniority",
        )
        cmp = compare_resolutions({"pipeline": a, "seniority": b})
        assert cmp["strategies"] == ["pipeline", "seniority"]
        rows = {r["driver_id"]: r for r in cmp["per_driver"]}
        assert rows["D1"]["agreement"] == "all_agree"
        assert rows["D2"]["agreement"] == "all_differ"
        assert rows["D2"]["pipeline_job"] == "J2"
        assert rows["D2"]["seniority_type"] == "seniority"
        assert rows["D3"]["agreement"] == "all_unassigned"
        assert cmp["agreement"] == {"all_agree": 1, "all_differ": 1, "all_unassigned": 1}

    def test_kpis(self):
        a = Resolution((Assignment("D1", "J1", "manual"), Assignment("D2", "J2", "airport-auto")), (), ("J3",))
        kpis = compare_resolutions({"pipeline": a})["kpis"]["pipeline"]
        assert kpis["assigned"] == 2
        assert kpis["pick_assigned"] == 1
        assert kpis["auto_assigned"] == 1
        assert kpis["open_jobs"] == 1

    def test_on_real_runs(self):
        snap = Snapshot(
            scope=SiteScope("C", "S"),
            drivers=(Driver("D1", "x", 1), Driver("D2", "y", 2, airport_certified=True)),
            jobs=(Job("J1", start_time="06:00"), Job("J2", start_time="05:00", is_airport=True)),
        )
        cmp = compare_resolutions(run_all(snap))
        assert all(r["agreement"] == "all_agree" for r in cmp["per_driver"])
