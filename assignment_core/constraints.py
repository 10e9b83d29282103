"""Post-hoc invariant checks for a computed resolution.

The resolver is expected to never produce any of these; the audit exists so
saved artifacts and alternative strategies can be checked after the fact.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import Any

from .models import ASSIGNMENT_TYPES, MANUAL, PICK_TYPES, Driver, Job, ManualAssignment, Resolution

VIOLATION_CODES = frozenset({
    "duplicate_driver",
    "duplicate_job",
    "unknown_driver",
    "unknown_job",
    "driver_ineligible",
    "airport_certification_missing",
    "unknown_assignment_type",
    "manual_pin_missing",
    "auto_assignment_while_disabled",
})


def validate_resolution(
    resolution: Resolution,
    drivers: Iterable[Driver],
    jobs: Iterable[Job],
    manual_assignments: Iterable[ManualAssignment] = (),
) -> list[dict[str, Any]]:
    """Check a resolution against the output invariants.

    Returns a list of violation dicts, one per broken rule:
        {driver_id, job_id, violation, detail}
    """
    driver_by_id = {d.employee_id: d for d in drivers}
    job_by_id = {j.job_id: j for j in jobs}
    violations: list[dict[str, Any]] = []

    def add(driver_id: str, job_id: str, violation: str, detail: str) -> None:
        violations.append({"driver_id": driver_id, "job_id": job_id, "violation": violation, "detail": detail})

    driver_counts = Counter(a.driver_id for a in resolution.assignments)
    job_counts = Counter(a.job_id for a in resolution.assignments)
    for driver_id, n in sorted(driver_counts.items()):
        if n > 1:
            add(driver_id, "", "duplicate_driver", f"Driver {driver_id} assigned {n} times")
    for job_id, n in sorted(job_counts.items()):
        if n > 1:
            add("", job_id, "duplicate_job", f"Job {job_id} assigned {n} times")

    for a in resolution.assignments:
        driver = driver_by_id.get(a.driver_id)
        job = job_by_id.get(a.job_id)
        if a.assignment_type not in ASSIGNMENT_TYPES:
            add(a.driver_id, a.job_id, "unknown_assignment_type", f"Type {a.assignment_type!r}")
        if not resolution.auto_assign_enabled and a.assignment_type not in PICK_TYPES:
            add(a.driver_id, a.job_id, "auto_assignment_while_disabled", f"Type {a.assignment_type}")
        if driver is None:
            add(a.driver_id, a.job_id, "unknown_driver", f"Driver {a.driver_id} not in roster")
            continue
        if job is None:
            add(a.driver_id, a.job_id, "unknown_job", f"Job {a.job_id} not in job list")
            continue
        if not driver.is_eligible:
            add(a.driver_id, a.job_id, "driver_ineligible", f"Driver {a.driver_id} is not eligible")
        if job.is_airport and not driver.airport_certified:
            add(a.driver_id, a.job_id, "airport_certification_missing",
                f"Airport job {a.job_id} given to uncertified driver {a.driver_id}")

    present = {(a.driver_id, a.job_id, a.assignment_type) for a in resolution.assignments}
    skipped = {(s.manual.driver_id, s.manual.job_id) for s in resolution.skipped_manual}
    for pin in manual_assignments:
        if pin.driver_id not in driver_by_id or pin.job_id not in job_by_id:
            continue
        if (pin.driver_id, pin.job_id) in skipped:
            continue
        if (pin.driver_id, pin.job_id, MANUAL) not in present:
            add(pin.driver_id, pin.job_id, "manual_pin_missing",
                f"Manual pin {pin.driver_id}->{pin.job_id} not in output")

    return violations
