"""Build comparison data from several resolutions of the same snapshot.

Merges per-strategy resolutions into one structure for the combined
comparison export and the ``compare_strategies`` tool.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from .models import PICK_TYPES, Resolution


def compare_resolutions(resolutions: dict[str, Resolution]) -> dict:
    """Build comparison from {"pipeline": resolution, "seniority": resolution}.

    Works with any number of strategies; a single one yields all_agree rows.
    """
    strategies = list(resolutions.keys())

    kpis = {}
    for name, res in resolutions.items():
        types = Counter(a.assignment_type for a in res.assignments)
        kpis[name] = {
            "assigned": len(res.assignments),
            "pick_assigned": sum(n for t, n in types.items() if t in PICK_TYPES),
            "auto_assigned": sum(n for t, n in types.items() if t not in PICK_TYPES),
            "open_jobs": len(res.open_job_ids),
            "unassigned_drivers": len(res.unassigned_driver_ids),
            "skipped_manual": len(res.skipped_manual),
            "by_type": dict(sorted(types.items())),
        }

    per_driver = _merge_per_driver(resolutions, strategies)
    agreement = Counter(row["agreement"] for row in per_driver)

    return {
        "strategies": strategies,
        "kpis": kpis,
        "per_driver": per_driver,
        "agreement": dict(sorted(agreement.items())),
    }


def _merge_per_driver(
    resolutions: dict[str, Resolution], strategies: list[str],
) -> list[dict[str, Any]]:
    """One row per driver that any strategy touched, with each strategy's job."""
    job_maps = {name: {a.driver_id: a for a in res.assignments} for name, res in resolutions.items()}

    driver_ids: set[str] = set()
    for name, res in resolutions.items():
        driver_ids.update(job_maps[name])
        driver_ids.update(res.unassigned_driver_ids)

    result = []
    for driver_id in sorted(driver_ids):
        row: dict[str, Any] = {"driver_id": driver_id}
        jobs_assigned: list[str] = []
        for name in strategies:
            a = job_maps[name].get(driver_id)
            row[f"{name}_job"] = a.job_id if a else ""
            row[f"{name}_type"] = a.assignment_type if a else ""
            if a:
                jobs_assigned.append(a.job_id)
        row["agreement"] = _classify_agreement(jobs_assigned, len(strategies))
        result.append(row)
    return result


def _classify_agreement(jobs_assigned: list[str], num_strategies: int) -> str:
    """Classify agreement level among strategy assignments."""
    unique = set(jobs_assigned)
    if len(unique) == 0:
        return "all_unassigned"
    if len(unique) == 1 and len(jobs_assigned) == num_strategies:
        return "all_agree"
    if len(jobs_assigned) >= 2 and len(unique) < len(jobs_assigned):
        return "majority"
    return "all_differ"
