"""Read-only projections of a resolution for dashboards and exports.

Classification looks only at where the job sits in the driver's cleaned
preference list; it ignores ``assignment_type`` on purpose, so a manual pin
that happens to match the driver's first pick still counts as first choice.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .models import (
    AIRPORT_AUTO,
    AIRPORT_DRIVER_POOL,
    ASSIGNMENT_TYPES,
    MANUAL,
    PREFERENCE,
    SENIORITY,
    VC_ASSIGNED,
    Assignment,
    Driver,
    Job,
    PreferenceSubmission,
    Resolution,
)
from .preferences import drivers_without_picks, preference_lists, preference_rank
from .time_utils import OTHER_BUCKET, START_BUCKETS, WEEKDAYS, expand_week_days, start_bucket

FIRST_CHOICE = "first_choice"
OTHER_PICK = "other_pick"
AUTO = "auto"

CLASSIFICATIONS = (FIRST_CHOICE, OTHER_PICK, AUTO)

STATUS_EMPTY = "empty"
STATUS_RESOLVED = "resolved"

TYPE_LABELS = {
    PREFERENCE: "Pick",
    VC_ASSIGNED: "Auto",
    MANUAL: "Manual",
    AIRPORT_AUTO: "Airport Auto",
    AIRPORT_DRIVER_POOL: "Airport Driver Pool",
    SENIORITY: "Seniority",
}

CLASSIFICATION_LABELS = {
    FIRST_CHOICE: "First Choice",
    OTHER_PICK: "Pick Match",
    AUTO: "Auto-Assigned",
}

# How many top picks count as "satisfied".
SATISFACTION_DEPTH = 3


def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _class_for_rank(rank: int | None) -> str:
    if rank is None:
        return AUTO
    return FIRST_CHOICE if rank == 0 else OTHER_PICK


def classify_assignment(
    assignment: Assignment,
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> str:
    """Return first_choice, other_pick or auto for one assignment."""
    prefs = preference_lists(preferences)
    return _class_for_rank(preference_rank(prefs, assignment.driver_id, assignment.job_id))


def classify_all(
    resolution: Resolution,
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> dict[str, str]:
    prefs = preference_lists(preferences)
    out: dict[str, str] = {}
    for a in resolution.assignments:
        out[a.driver_id] = _class_for_rank(preference_rank(prefs, a.driver_id, a.job_id))
    return out


def assignment_rows(
    resolution: Resolution,
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]] | None = None,
) -> list[dict[str, Any]]:
    """Join assignments to driver and job records, most senior first.

    Rows whose driver or job is unknown are kept with blank display fields
    so nothing computed is silently hidden.
    """
    driver_by_id = {d.employee_id: d for d in drivers}
    job_by_id = {j.job_id: j for j in jobs}
    prefs = preference_lists(preferences or {})

    rows: list[dict[str, Any]] = []
    for a in resolution.assignments:
        driver = driver_by_id.get(a.driver_id)
        job = job_by_id.get(a.job_id)
        rank = preference_rank(prefs, a.driver_id, a.job_id)
        rows.append(
            {
                "driver_id": a.driver_id,
                "driver_name": driver.name if driver else "",
                "seniority_number": driver.seniority_number if driver else None,
                "vc_status": driver.vc_status if driver else False,
                "airport_certified": driver.airport_certified if driver else False,
                "job_id": a.job_id,
                "start_time": job.start_time if job else "",
                "week_days": job.week_days if job else "",
                "is_airport": job.is_airport if job else False,
                "assignment_type": a.assignment_type,
                "type_label": TYPE_LABELS.get(a.assignment_type, a.assignment_type),
                "classification": _class_for_rank(rank),
                "preference_rank": rank + 1 if rank is not None else None,
            }
        )

    rows.sort(key=lambda r: (r["seniority_number"] is None, r["seniority_number"] or 0, r["driver_id"]))
    return rows


def summarize_resolution(
    resolution: Resolution,
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> dict[str, Any]:
    """Aggregate counts for the final-assignments dashboard.

    ``status`` is ``empty`` when nothing has been assigned yet; that is a
    normal state, not an error.
    """
    drivers = list(drivers)
    jobs = list(jobs)
    prefs = preference_lists(preferences)

    classes = classify_all(resolution, prefs)
    class_counts = Counter(classes.values())
    type_counts = Counter(a.assignment_type for a in resolution.assignments)
    total = len(resolution.assignments)

    open_jobs = set(resolution.open_job_ids)
    satisfied = 0
    with_picks = 0
    assigned = resolution.by_driver()
    for driver_id, ordered in prefs.items():
        if not ordered:
            continue
        with_picks += 1
        a = assigned.get(driver_id)
        if a is None:
            continue
        rank = preference_rank(prefs, driver_id, a.job_id)
        if rank is not None and rank < SATISFACTION_DEPTH:
            satisfied += 1

    return {
        "status": STATUS_EMPTY if total == 0 else STATUS_RESOLVED,
        "strategy": resolution.strategy,
        "auto_assign_enabled": resolution.auto_assign_enabled,
        "total_assignments": total,
        "by_type": {t: type_counts.get(t, 0) for t in ASSIGNMENT_TYPES},
        "by_classification": {c: class_counts.get(c, 0) for c in CLASSIFICATIONS},
        "first_choice_rate": _rate(class_counts.get(FIRST_CHOICE, 0), total),
        "any_pick_rate": _rate(class_counts.get(FIRST_CHOICE, 0) + class_counts.get(OTHER_PICK, 0), total),
        "satisfaction_rate": _rate(satisfied, with_picks),
        "unresolved": {
            "open_job_ids": list(resolution.open_job_ids),
            "unassigned_driver_ids": list(resolution.unassigned_driver_ids),
            "open_airport_jobs": sum(1 for j in jobs if j.job_id in open_jobs and j.is_airport),
        },
        "skipped_manual": [s.as_dict() for s in resolution.skipped_manual],
        "drivers_without_picks": [d.employee_id for d in drivers_without_picks(drivers, prefs)],
    }


def site_statistics(
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> dict[str, Any]:
    """Roster-level figures that do not depend on a resolution."""
    drivers = list(drivers)
    jobs = list(jobs)
    prefs = preference_lists(preferences)

    eligible = [d for d in drivers if d.is_eligible]
    submitted = sum(1 for d in eligible if d.employee_id in prefs)

    buckets = {label: 0 for label, _, _ in START_BUCKETS}
    buckets[OTHER_BUCKET] = 0
    weekdays = {day: 0 for day in WEEKDAYS}
    for job in jobs:
        buckets[start_bucket(job.start_time)] += 1
        for idx in expand_week_days(job.week_days):
            weekdays[WEEKDAYS[idx]] += 1

    return {
        "total_drivers": len(drivers),
        "eligible_drivers": len(eligible),
        "total_jobs": len(jobs),
        "airport_jobs": sum(1 for j in jobs if j.is_airport),
        "vc_drivers": sum(1 for d in drivers if d.vc_status),
        "airport_certified_drivers": sum(1 for d in drivers if d.airport_certified),
        "submitted_preferences": submitted,
        "submission_rate": _rate(submitted, len(eligible)),
        "start_time_distribution": buckets,
        "weekday_distribution": weekdays,
    }
