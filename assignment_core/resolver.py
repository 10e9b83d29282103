"""Deterministic job-to-driver resolution.

The resolver works on a copy of the inputs: an "open jobs" pool and an
"unassigned drivers" pool are rebuilt on every call and claimed from by a
fixed sequence of passes. Nothing here performs I/O or mutates its inputs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from .models import (
    AIRPORT_AUTO,
    AIRPORT_DRIVER_POOL,
    MANUAL,
    PREFERENCE,
    SENIORITY,
    VC_ASSIGNED,
    Assignment,
    Driver,
    Job,
    ManualAssignment,
    PreferenceSubmission,
    Resolution,
    SkippedManual,
)
from .preferences import preference_lists
from .time_utils import parse_hhmm_to_minutes

logger = logging.getLogger(__name__)

PIPELINE = "pipeline"

# Reasons recorded when a manual pin cannot be honoured.
SKIP_UNKNOWN_DRIVER = "unknown_driver"
SKIP_UNKNOWN_JOB = "unknown_job"
SKIP_INELIGIBLE = "driver_ineligible"
SKIP_NOT_CERTIFIED = "airport_certification_missing"
SKIP_DRIVER_PINNED = "driver_already_pinned"
SKIP_JOB_PINNED = "job_already_pinned"

_LATE = 24 * 60


def driver_sort_key(driver: Driver) -> tuple[int, str]:
    return (driver.seniority_number, driver.employee_id)


def job_sort_key(job: Job) -> tuple[int, str]:
    minutes = parse_hhmm_to_minutes(job.start_time)
    return (minutes if minutes is not None else _LATE, job.job_id)


def is_compatible(driver: Driver, job: Job) -> bool:
    return driver.airport_certified or not job.is_airport


@dataclass
class ResolverState:
    drivers: dict[str, Driver]
    jobs: dict[str, Job]
    ordered_drivers: list[Driver]
    ordered_jobs: list[Job]
    preferences: dict[str, tuple[str, ...]]
    assignments: list[Assignment] = field(default_factory=list)
    assigned_drivers: set[str] = field(default_factory=set)
    assigned_jobs: set[str] = field(default_factory=set)
    skipped_manual: list[SkippedManual] = field(default_factory=list)

    def claim(self, driver: Driver, job: Job, assignment_type: str) -> None:
        self.assignments.append(Assignment(driver.employee_id, job.job_id, assignment_type))
        self.assigned_drivers.add(driver.employee_id)
        self.assigned_jobs.add(job.job_id)

    def waiting_drivers(self) -> list[Driver]:
        """Eligible, still unassigned drivers in seniority order."""
        return [
            d for d in self.ordered_drivers
            if d.is_eligible and d.employee_id not in self.assigned_drivers
        ]

    def open_jobs(self) -> list[Job]:
        return [j for j in self.ordered_jobs if j.job_id not in self.assigned_jobs]

    def to_resolution(self, *, strategy: str, auto_assign_enabled: bool) -> Resolution:
        return Resolution(
            assignments=tuple(self.assignments),
            unassigned_driver_ids=tuple(d.employee_id for d in self.waiting_drivers()),
            open_job_ids=tuple(j.job_id for j in self.open_jobs()),
            skipped_manual=tuple(self.skipped_manual),
            strategy=strategy,
            auto_assign_enabled=auto_assign_enabled,
        )


def _index_unique(items: Iterable, key: str, label: str) -> dict:
    out: dict = {}
    for item in items:
        ident = getattr(item, key)
        if ident in out:
            raise ValueError(f"Duplicate {label} id in input: {ident!r}")
        out[ident] = item
    return out


def build_state(
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> ResolverState:
    driver_map = _index_unique(drivers, "employee_id", "driver")
    job_map = _index_unique(jobs, "job_id", "job")
    return ResolverState(
        drivers=driver_map,
        jobs=job_map,
        ordered_drivers=sorted(driver_map.values(), key=driver_sort_key),
        ordered_jobs=sorted(job_map.values(), key=job_sort_key),
        preferences=preference_lists(preferences),
    )


# ---- Passes ----------------------------------------------------------------

def manual_pass(state: ResolverState, manual_assignments: Iterable[ManualAssignment]) -> None:
    """Emit every honourable manual pin; pins are irrevocable afterwards."""
    for pin in sorted(manual_assignments, key=lambda m: (m.job_id, m.driver_id)):
        driver = state.drivers.get(pin.driver_id)
        job = state.jobs.get(pin.job_id)
        reason = None
        if driver is None:
            reason = SKIP_UNKNOWN_DRIVER
        elif job is None:
            reason = SKIP_UNKNOWN_JOB
        elif pin.job_id in state.assigned_jobs:
            reason = SKIP_JOB_PINNED
        elif pin.driver_id in state.assigned_drivers:
            reason = SKIP_DRIVER_PINNED
        elif not driver.is_eligible:
            reason = SKIP_INELIGIBLE
        elif not is_compatible(driver, job):
            reason = SKIP_NOT_CERTIFIED

        if reason is not None:
            # Pins for removed records are plain staleness, not worth a warning.
            if reason not in (SKIP_UNKNOWN_DRIVER, SKIP_UNKNOWN_JOB):
                logger.warning("Skipping manual pin driver=%s job=%s: %s", pin.driver_id, pin.job_id, reason)
            state.skipped_manual.append(SkippedManual(pin, reason))
            continue
        state.claim(driver, job, MANUAL)


def preference_pass(state: ResolverState) -> None:
    """Most senior first, each driver takes their best still-open pick."""
    for driver in state.waiting_drivers():
        for job_id in state.preferences.get(driver.employee_id, ()):
            if job_id in state.assigned_jobs:
                continue
            job = state.jobs.get(job_id)
            if job is None or not is_compatible(driver, job):
                continue
            state.claim(driver, job, PREFERENCE)
            break


def vc_pass(state: ResolverState) -> None:
    for driver in state.waiting_drivers():
        if not driver.vc_status:
            continue
        for job in state.open_jobs():
            if is_compatible(driver, job):
                state.claim(driver, job, VC_ASSIGNED)
                break


def _pair_airport(state: ResolverState, candidates: list[Driver], assignment_type: str) -> None:
    airport_jobs = [j for j in state.open_jobs() if j.is_airport]
    for driver, job in zip(candidates, airport_jobs):
        state.claim(driver, job, assignment_type)


def airport_pool_pass(state: ResolverState) -> None:
    """Certified drivers who took part in picking claim the airport jobs."""
    pool = [
        d for d in state.waiting_drivers()
        if d.airport_certified and d.employee_id in state.preferences
    ]
    _pair_airport(state, pool, AIRPORT_DRIVER_POOL)


def airport_auto_pass(state: ResolverState) -> None:
    """Any certified driver left sweeps the airport jobs still open."""
    pool = [d for d in state.waiting_drivers() if d.airport_certified]
    _pair_airport(state, pool, AIRPORT_AUTO)


def seniority_pass(state: ResolverState) -> None:
    ground_jobs = [j for j in state.open_jobs() if not j.is_airport]
    for driver, job in zip(state.waiting_drivers(), ground_jobs):
        state.claim(driver, job, SENIORITY)


# ---- Entry point -----------------------------------------------------------

def resolve(
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    cleaned_preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
    manual_assignments: Iterable[ManualAssignment],
    auto_assign_enabled: bool,
) -> Resolution:
    """Compute the assignment set for one site snapshot.

    Identical inputs give an identical result whatever order the drivers,
    jobs or pins arrive in. Too many drivers or too many jobs is a normal
    outcome reported through ``unassigned_driver_ids`` / ``open_job_ids``.
    Raises ValueError only for duplicate driver or job ids.
    """
    state = build_state(drivers, jobs, cleaned_preferences)

    manual_pass(state, manual_assignments)
    preference_pass(state)
    if auto_assign_enabled:
        for step in (vc_pass, airport_pool_pass, airport_auto_pass, seniority_pass):
            before = len(state.assignments)
            step(state)
            logger.debug("%s claimed %d job(s)", step.__name__, len(state.assignments) - before)

    return state.to_resolution(strategy=PIPELINE, auto_assign_enabled=auto_assign_enabled)


def strict_seniority_pass(state: ResolverState) -> None:
    """Airport jobs go to certified drivers first, then everyone takes the
    first open job they can work, airport jobs listed first."""
    _pair_airport(state, [d for d in state.waiting_drivers() if d.airport_certified], SENIORITY)

    remaining = sorted(state.open_jobs(), key=lambda j: (0 if j.is_airport else 1, *job_sort_key(j)))
    for driver in state.waiting_drivers():
        for job in remaining:
            if job.job_id in state.assigned_jobs or not is_compatible(driver, job):
                continue
            state.claim(driver, job, SENIORITY)
            break


def resolve_seniority(
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    cleaned_preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
    manual_assignments: Iterable[ManualAssignment],
    auto_assign_enabled: bool,
) -> Resolution:
    """Like :func:`resolve`, but every fallback claim is made in plain
    seniority order and labelled ``seniority``."""
    state = build_state(drivers, jobs, cleaned_preferences)

    manual_pass(state, manual_assignments)
    preference_pass(state)
    if auto_assign_enabled:
        strict_seniority_pass(state)

    return state.to_resolution(strategy="seniority", auto_assign_enabled=auto_assign_enabled)
