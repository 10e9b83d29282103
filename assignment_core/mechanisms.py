"""Strategy dispatcher for assignment resolution.

Routes to the requested fallback strategy:
  - pipeline:  manual, preference, VC, airport pool, airport auto, seniority
  - seniority: manual, preference, then strict seniority order for the rest
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import Resolution, Snapshot
from .preferences import clean_preferences, unique_preferences

STRATEGIES = ("pipeline", "seniority")


def run_strategy(
    strategy: str,
    drivers,
    jobs,
    cleaned_preferences,
    manual_assignments,
    auto_assign_enabled: bool,
) -> Resolution:
    """Run the specified strategy. All strategies return a Resolution."""
    from .resolver import resolve, resolve_seniority

    if strategy == "pipeline":
        return resolve(drivers, jobs, cleaned_preferences, manual_assignments, auto_assign_enabled)
    if strategy == "seniority":
        return resolve_seniority(drivers, jobs, cleaned_preferences, manual_assignments, auto_assign_enabled)
    raise ValueError(f"Unknown strategy: {strategy!r}. Choose from {STRATEGIES}")


def resolve_snapshot(snapshot: Snapshot, *, strategy: str = "pipeline") -> Resolution:
    """De-duplicate and clean the snapshot's submissions, then resolve."""
    prefs = snapshot_preferences(snapshot)
    return run_strategy(
        strategy,
        snapshot.drivers,
        snapshot.jobs,
        prefs,
        snapshot.manual_assignments,
        snapshot.auto_assign_enabled,
    )


def snapshot_preferences(snapshot: Snapshot) -> dict:
    return clean_preferences(
        unique_preferences(snapshot.submissions),
        [j.job_id for j in snapshot.jobs],
        valid_driver_ids=[d.employee_id for d in snapshot.drivers],
    )


def run_all(snapshot: Snapshot, strategies: Iterable[str] = STRATEGIES) -> dict[str, Resolution]:
    return {name: resolve_snapshot(snapshot, strategy=name) for name in strategies}
