"""Vacation-week allocation on top of the job resolver.

A vacation week with ``total_slots`` places is expanded into that many slot
jobs (``W001#01``, ``W001#02``, ...). Drivers rank weeks; a week pick is
expanded into its slots so the ordinary pipeline can run unchanged, and the
result is collapsed back to one week per driver.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .models import Driver, Job, ManualAssignment, PreferenceSubmission, SkippedManual
from .preferences import preference_lists
from .resolver import resolve

SLOT_SEPARATOR = "#"


@dataclass(frozen=True)
class VacationWeek:
    week_id: str
    start_date: str
    end_date: str
    total_slots: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VacationWeek:
        return cls(
            week_id=str(data.get("weekId", "")).strip(),
            start_date=str(data.get("startDate", "")),
            end_date=str(data.get("endDate", "")),
            total_slots=int(data.get("totalSlots") or 0),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "weekId": self.week_id,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "totalSlots": self.total_slots,
        }


@dataclass(frozen=True)
class VacationAssignment:
    driver_id: str
    week_id: str
    assignment_type: str

    def as_dict(self) -> dict[str, Any]:
        return {"driverId": self.driver_id, "weekId": self.week_id, "assignmentType": self.assignment_type}


@dataclass(frozen=True)
class VacationResolution:
    assignments: tuple[VacationAssignment, ...]
    unassigned_driver_ids: tuple[str, ...]
    remaining_slots: dict[str, int]
    skipped_manual: tuple[SkippedManual, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "assignments": [a.as_dict() for a in self.assignments],
            "unassignedDriverIds": list(self.unassigned_driver_ids),
            "remainingSlots": dict(self.remaining_slots),
            "skippedManual": [s.as_dict() for s in self.skipped_manual],
        }


def slot_id(week_id: str, n: int) -> str:
    return f"{week_id}{SLOT_SEPARATOR}{n:02d}"


def week_of(slot: str) -> str:
    return slot.rsplit(SLOT_SEPARATOR, 1)[0]


def _ordered_weeks(weeks: Iterable[VacationWeek]) -> list[VacationWeek]:
    # Slots carry no start time, so the resolver fills them in week-id order.
    return sorted(weeks, key=lambda w: w.week_id)


def expand_weeks(weeks: Iterable[VacationWeek]) -> list[Job]:
    """Slot jobs for every week. Vacation slots are never airport jobs."""
    jobs = []
    for week in _ordered_weeks(weeks):
        for n in range(1, max(week.total_slots, 0) + 1):
            jobs.append(Job(job_id=slot_id(week.week_id, n)))
    return jobs


def expand_preferences(
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
    weeks: Iterable[VacationWeek],
) -> dict[str, tuple[str, ...]]:
    """Turn ranked week ids into ranked slot ids, dropping unknown weeks."""
    slots_by_week = {
        w.week_id: [slot_id(w.week_id, n) for n in range(1, max(w.total_slots, 0) + 1)]
        for w in weeks
    }
    out: dict[str, tuple[str, ...]] = {}
    for driver_id, ordered in preference_lists(preferences).items():
        slots: list[str] = []
        for week_id in ordered:
            slots.extend(slots_by_week.get(week_id, ()))
        out[driver_id] = tuple(slots)
    return out


def expand_manual(manual: Iterable[ManualAssignment]) -> list[ManualAssignment]:
    """Pins name a week; spread them over that week's slots in driver order.

    Pins beyond the week's capacity point at a slot that does not exist and
    are reported as skipped by the resolver.
    """
    by_week: dict[str, list[str]] = {}
    for pin in manual:
        by_week.setdefault(pin.job_id, []).append(pin.driver_id)
    out = []
    for week_id, driver_ids in sorted(by_week.items()):
        for n, driver_id in enumerate(sorted(driver_ids), start=1):
            out.append(ManualAssignment(driver_id=driver_id, job_id=slot_id(week_id, n)))
    return out


def resolve_vacation(
    drivers: Iterable[Driver],
    weeks: Iterable[VacationWeek],
    preferences: Mapping[str, PreferenceSubmission | Sequence[str]],
    manual_assignments: Iterable[ManualAssignment] = (),
    auto_assign_enabled: bool = True,
) -> VacationResolution:
    """Assign each driver at most one vacation week."""
    weeks = list(weeks)
    jobs = expand_weeks(weeks)
    res = resolve(
        drivers,
        jobs,
        expand_preferences(preferences, weeks),
        expand_manual(manual_assignments),
        auto_assign_enabled,
    )

    remaining = {w.week_id: 0 for w in _ordered_weeks(weeks)}
    for job_id in res.open_job_ids:
        remaining[week_of(job_id)] += 1

    # Report skipped pins against the week the admin chose.
    skipped = tuple(
        SkippedManual(ManualAssignment(s.manual.driver_id, week_of(s.manual.job_id)), s.reason)
        for s in res.skipped_manual
    )
    return VacationResolution(
        assignments=tuple(
            VacationAssignment(a.driver_id, week_of(a.job_id), a.assignment_type) for a in res.assignments
        ),
        unassigned_driver_ids=res.unassigned_driver_ids,
        remaining_slots=remaining,
        skipped_manual=skipped,
    )
