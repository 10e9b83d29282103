"""Read a CSV input directory into a Snapshot for the resolver."""

from __future__ import annotations

import csv
import json
from pathlib import Path

from assignment_core.models import Driver, Job, ManualAssignment, PreferenceSubmission, SiteScope, Snapshot

from .schemas import pipe_split, to_bool, to_int


def load_input(directory: Path) -> Snapshot:
    """Read CSV input dir -> Snapshot.

    ``meta.json``, ``drivers.csv`` and ``jobs.csv`` are required;
    ``preferences.csv`` and ``manual_assignments.csv`` are optional.
    Raises FileNotFoundError if required files are missing.
    """
    d = Path(directory)

    # -- meta.json --------------------------------------------------------------
    meta = _read_json(d / "meta.json")
    scope = SiteScope(str(meta.get("company_id", "")), str(meta.get("site_id", "")))

    # -- drivers.csv ------------------------------------------------------------
    drivers = []
    for row in _read_csv(d / "drivers.csv"):
        drivers.append(
            Driver(
                employee_id=row["employee_id"].strip(),
                name=row.get("name", ""),
                seniority_number=to_int(row.get("seniority_number")),
                vc_status=to_bool(row.get("vc_status")),
                airport_certified=to_bool(row.get("airport_certified")),
                is_eligible=to_bool(row.get("is_eligible"), default=True),
                company_id=scope.company_id,
                site_id=scope.site_id,
            )
        )

    # -- jobs.csv ---------------------------------------------------------------
    jobs = []
    for row in _read_csv(d / "jobs.csv"):
        jobs.append(
            Job(
                job_id=row["job_id"].strip(),
                start_time=row.get("start_time", ""),
                week_days=row.get("week_days", ""),
                is_airport=to_bool(row.get("is_airport")),
                company_id=scope.company_id,
                site_id=scope.site_id,
            )
        )

    # -- preferences.csv (optional) ---------------------------------------------
    submissions = []
    for row in _read_csv(d / "preferences.csv", required=False):
        submissions.append(
            PreferenceSubmission(
                driver_id=row["driver_id"].strip(),
                ordered_job_ids=tuple(pipe_split(row.get("preferences"))),
                submission_time=row.get("submission_time", ""),
            )
        )

    # -- manual_assignments.csv (optional) --------------------------------------
    manual = [
        ManualAssignment(driver_id=row["driver_id"].strip(), job_id=row["job_id"].strip())
        for row in _read_csv(d / "manual_assignments.csv", required=False)
    ]

    return Snapshot(
        scope=scope,
        drivers=tuple(drivers),
        jobs=tuple(jobs),
        submissions=tuple(submissions),
        manual_assignments=tuple(manual),
        auto_assign_enabled=bool(meta.get("auto_assign_enabled", True)),
        meta=meta,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> dict:
    """Read and parse a JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Required file not found: {path}")
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _read_csv(path: Path, *, required: bool = True) -> list[dict[str, str]]:
    """Read a CSV file into a list of dicts via csv.DictReader."""
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Required file not found: {path}")
        return []
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))
