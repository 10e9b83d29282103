"""Write the portal-style CSV exports and an aggregated metrics.json.

The three CSVs mirror the admin exports (final assignments, unassigned
jobs, drivers without picks). metrics.json holds the dashboard KPIs so a
report can be rendered without re-reading the CSVs.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from assignment_core.mechanisms import snapshot_preferences
from assignment_core.models import Resolution, Snapshot
from assignment_core.preferences import drivers_without_picks
from assignment_core.reporting import TYPE_LABELS, assignment_rows, site_statistics, summarize_resolution
from assignment_core.time_utils import now_utc_iso

from .schemas import (
    ASSIGNMENTS_COLS,
    DRIVERS_WITHOUT_PICKS_COLS,
    UNASSIGNED_JOBS_COLS,
    fmt_yes_no,
)


def _write_csv(path: Path, columns: list[str], rows: list[dict[str, Any]]) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)
    return path


def export_assignment_rows(resolution: Resolution, snapshot: Snapshot) -> list[dict[str, Any]]:
    """Rows for assignments.csv; assignments with an unknown record are left out."""
    known_jobs = {j.job_id for j in snapshot.jobs}
    rows = []
    for r in assignment_rows(resolution, snapshot.drivers, snapshot.jobs):
        if r["seniority_number"] is None or r["job_id"] not in known_jobs:
            continue
        rows.append({
            "Driver ID": r["driver_id"],
            "Driver Name": r["driver_name"],
            "Seniority Number": r["seniority_number"],
            "VC Status": fmt_yes_no(r["vc_status"]),
            "Job ID": r["job_id"],
            "Job Start Time": r["start_time"],
            "Week Days": r["week_days"],
            "Airport Job": fmt_yes_no(r["is_airport"]),
            "Assignment Type": TYPE_LABELS.get(r["assignment_type"], r["assignment_type"]),
        })
    return rows


def export_unassigned_jobs(resolution: Resolution, snapshot: Snapshot) -> list[dict[str, Any]]:
    job_by_id = {j.job_id: j for j in snapshot.jobs}
    rows = []
    for job_id in resolution.open_job_ids:
        job = job_by_id.get(job_id)
        if job is None:
            continue
        rows.append({
            "Job ID": job.job_id,
            "Start Time": job.start_time,
            "Work Days": job.week_days,
            "Airport Job": fmt_yes_no(job.is_airport),
        })
    return rows


def export_drivers_without_picks(snapshot: Snapshot) -> list[dict[str, Any]]:
    prefs = snapshot_preferences(snapshot)
    return [
        {
            "Driver ID": d.employee_id,
            "Driver Name": d.name,
            "Seniority Number": d.seniority_number,
            "VC Status": fmt_yes_no(d.vc_status),
            "Airport Certified": fmt_yes_no(d.airport_certified),
        }
        for d in drivers_without_picks(snapshot.drivers, prefs)
    ]


def build_metrics(resolution: Resolution, snapshot: Snapshot) -> dict[str, Any]:
    prefs = snapshot_preferences(snapshot)
    return {
        "generated_at": now_utc_iso(),
        "company_id": snapshot.scope.company_id,
        "site_id": snapshot.scope.site_id,
        "fingerprint": snapshot.fingerprint(),
        "summary": summarize_resolution(resolution, snapshot.drivers, snapshot.jobs, prefs),
        "statistics": site_statistics(snapshot.drivers, snapshot.jobs, prefs),
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def write_output(resolution: Resolution, snapshot: Snapshot, directory: Path) -> dict[str, Path]:
    """Write assignments.csv, unassigned_jobs.csv, drivers_without_picks.csv
    and metrics.json into ``directory``. Returns {filename: Path}."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    paths = {
        "assignments.csv": _write_csv(
            directory / "assignments.csv", ASSIGNMENTS_COLS, export_assignment_rows(resolution, snapshot),
        ),
        "unassigned_jobs.csv": _write_csv(
            directory / "unassigned_jobs.csv", UNASSIGNED_JOBS_COLS, export_unassigned_jobs(resolution, snapshot),
        ),
        "drivers_without_picks.csv": _write_csv(
            directory / "drivers_without_picks.csv", DRIVERS_WITHOUT_PICKS_COLS, export_drivers_without_picks(snapshot),
        ),
    }

    metrics_path = directory / "metrics.json"
    metrics_path.write_text(
        json.dumps(build_metrics(resolution, snapshot), indent=2, ensure_ascii=False, default=str) + "\n",
        encoding="utf-8",
    )
    paths["metrics.json"] = metrics_path
    return paths
