"""Roundtrip test: load_input -> resolve_snapshot -> write_output -> verify."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from assignment_core.io.reader import load_input
from assignment_core.io.writer import write_output
from assignment_core.mechanisms import resolve_snapshot

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "minimal"


def _read_csv(path: Path) -> list[dict[str, str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def snapshot():
    return load_input(FIXTURES_DIR)


@pytest.fixture
def resolution(snapshot):
    return resolve_snapshot(snapshot)


class TestLoadInput:
    def test_scope_from_meta(self, snapshot):
        assert snapshot.scope.key == "UPS/JACFL"
        assert snapshot.auto_assign_enabled is True
        assert snapshot.meta["label"] == "Minimal bid week"

    def test_loads_drivers(self, snapshot):
        assert len(snapshot.drivers) == 5
        ben = next(d for d in snapshot.drivers if d.employee_id == "1000002")
        assert ben.name == "Ben Brown"
        assert ben.seniority_number == 2
        assert ben.vc_status is True
        assert ben.airport_certified is False
        assert ben.company_id == "UPS"

    def test_ineligible_driver(self, snapshot):
        eve = next(d for d in snapshot.drivers if d.employee_id == "1000005")
        assert eve.is_eligible is False

    def test_loads_jobs(self, snapshot):
        assert [j.job_id for j in snapshot.jobs] == ["J100", "J200", "J300", "J400", "J500"]
        j400 = next(j for j in snapshot.jobs if j.job_id == "J400")
        assert j400.week_days == "Mon,Wed,Fri"
        assert next(j for j in snapshot.jobs if j.job_id == "J300").is_airport is True

    def test_loads_preferences_in_file_order(self, snapshot):
        assert len(snapshot.submissions) == 4
        assert snapshot.submissions[1].ordered_job_ids == ("J200", "J100")

    def test_loads_manual(self, snapshot):
        assert [(m.driver_id, m.job_id) for m in snapshot.manual_assignments] == [("1000004", "J400")]

    def test_missing_required_file(self, tmp_path):
        (tmp_path / "meta.json").write_text("{}", encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            load_input(tmp_path)

    def test_optional_files_may_be_absent(self, tmp_path):
        (tmp_path / "meta.json").write_text(json.dumps({"company_id": "C", "site_id": "S"}), encoding="utf-8")
        (tmp_path / "drivers.csv").write_text("employee_id,name,seniority_number\n1234567,Solo,1\n", encoding="utf-8")
        (tmp_path / "jobs.csv").write_text("job_id,start_time,week_days,is_airport\nJ1,07:00,Mon,FALSE\n", encoding="utf-8")
        snap = load_input(tmp_path)
        assert snap.submissions == ()
        assert snap.manual_assignments == ()
        assert snap.drivers[0].is_eligible is True


class TestResolveFixture:
    def test_assignments(self, resolution):
        got = [(a.driver_id, a.job_id, a.assignment_type) for a in resolution.assignments]
        assert got == [
            ("1000004", "J400", "manual"),
            ("1000001", "J200", "preference"),
            ("1000002", "J100", "vc-assigned"),
            ("1000003", "J500", "seniority"),
        ]

    def test_airport_job_left_open(self, resolution):
        assert resolution.open_job_ids == ("J300",)
        assert resolution.unassigned_driver_ids == ()


class TestWriteOutput:
    def test_writes_all_files(self, resolution, snapshot, tmp_path):
        paths = write_output(resolution, snapshot, tmp_path / "out")
        assert set(paths) == {
            "assignments.csv",
            "unassigned_jobs.csv",
            "drivers_without_picks.csv",
            "metrics.json",
        }
        for p in paths.values():
            assert p.exists()

    def test_assignments_csv(self, resolution, snapshot, tmp_path):
        paths = write_output(resolution, snapshot, tmp_path)
        rows = _read_csv(paths["assignments.csv"])
        assert [r["Driver ID"] for r in rows] == ["1000001", "1000002", "1000003", "1000004"]
        ben = rows[1]
        assert ben["VC Status"] == "Yes"
        assert ben["Job ID"] == "J100"
        assert ben["Assignment Type"] == "Auto"
        assert rows[0]["Assignment Type"] == "Pick"
        assert rows[2]["Assignment Type"] == "Seniority"
        assert rows[3]["Assignment Type"] == "Manual"
        assert rows[3]["Week Days"] == "Mon,Wed,Fri"

    def test_unassigned_jobs_csv(self, resolution, snapshot, tmp_path):
        paths = write_output(resolution, snapshot, tmp_path)
        rows = _read_csv(paths["unassigned_jobs.csv"])
        assert rows == [{"Job ID": "J300", "Start Time": "04:45", "Work Days": "Sun-Thu", "Airport Job": "Yes"}]

    def test_drivers_without_picks_csv(self, resolution, snapshot, tmp_path):
        paths = write_output(resolution, snapshot, tmp_path)
        rows = _read_csv(paths["drivers_without_picks.csv"])
        assert [r["Driver ID"] for r in rows] == ["1000002", "1000004"]
        assert rows[1]["Airport Certified"] == "Yes"

    def test_metrics_json(self, resolution, snapshot, tmp_path):
        paths = write_output(resolution, snapshot, tmp_path)
        metrics = json.loads(paths["metrics.json"].read_text(encoding="utf-8"))
        assert metrics["company_id"] == "UPS"
        assert metrics["fingerprint"] == snapshot.fingerprint()
        summary = metrics["summary"]
        assert summary["status"] == "resolved"
        assert summary["total_assignments"] == 4
        assert summary["by_type"]["vc-assigned"] == 1
        assert summary["unresolved"]["open_airport_jobs"] == 1
        stats = metrics["statistics"]
        assert stats["total_jobs"] == 5
        assert stats["start_time_distribution"]["05-10"] == 2
        assert stats["start_time_distribution"]["other"] == 2


class TestRenderXlsx:
    def test_sheets(self, resolution, snapshot, tmp_path):
        openpyxl = pytest.importorskip("openpyxl")
        from assignment_core.io.xlsx import render_xlsx

        path = render_xlsx(resolution, snapshot, tmp_path / "plan.xlsx")
        wb = openpyxl.load_workbook(path)
        assert wb.sheetnames == ["Assignments", "Unassigned Jobs", "Drivers Without Picks", "Summary"]
        ws = wb["Assignments"]
        assert ws.max_row == 5
        assert ws.cell(row=1, column=1).value == "Driver ID"
