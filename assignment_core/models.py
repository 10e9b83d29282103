"""Records consumed and produced by the assignment engine.

Field names follow Python conventions; ``from_dict`` / ``as_dict`` speak the
camelCase shape used by the portal's tables and exports.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Any

MANUAL = "manual"
PREFERENCE = "preference"
VC_ASSIGNED = "vc-assigned"
AIRPORT_DRIVER_POOL = "airport-driver-pool"
AIRPORT_AUTO = "airport-auto"
SENIORITY = "seniority"

ASSIGNMENT_TYPES = (
    MANUAL,
    PREFERENCE,
    VC_ASSIGNED,
    AIRPORT_DRIVER_POOL,
    AIRPORT_AUTO,
    SENIORITY,
)

# Types that may appear when auto-assignment is switched off.
PICK_TYPES = frozenset({MANUAL, PREFERENCE})

_EMPLOYEE_ID_RE = re.compile(r"\d{7}")


def is_valid_employee_id(value: str | None) -> bool:
    return bool(value) and bool(_EMPLOYEE_ID_RE.fullmatch(str(value)))


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class SiteScope:
    company_id: str
    site_id: str

    @property
    def key(self) -> str:
        return f"{self.company_id}/{self.site_id}"

    @classmethod
    def parse(cls, value: str) -> SiteScope:
        company, sep, site = str(value).partition("/")
        if not sep or not company.strip() or not site.strip():
            raise ValueError(f"Scope must look like COMPANY/SITE, got {value!r}")
        return cls(company.strip(), site.strip())


@dataclass(frozen=True)
class Driver:
    employee_id: str
    name: str
    seniority_number: int
    vc_status: bool = False
    airport_certified: bool = False
    is_eligible: bool = True
    company_id: str = ""
    site_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Driver:
        return cls(
            employee_id=str(data.get("employeeId", "")).strip(),
            name=str(data.get("name", "")),
            seniority_number=int(data.get("seniorityNumber") or 0),
            vc_status=_as_bool(data.get("vcStatus")),
            airport_certified=_as_bool(data.get("airportCertified")),
            is_eligible=_as_bool(data.get("isEligible", True)),
            company_id=str(data.get("companyId", "")),
            site_id=str(data.get("siteId", "")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            "name": self.name,
            "seniorityNumber": self.seniority_number,
            "vcStatus": self.vc_status,
            "airportCertified": self.airport_certified,
            "isEligible": self.is_eligible,
            "companyId": self.company_id,
            "siteId": self.site_id,
        }


@dataclass(frozen=True)
class Job:
    job_id: str
    start_time: str = ""
    week_days: str = ""
    is_airport: bool = False
    company_id: str = ""
    site_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            job_id=str(data.get("jobId", "")).strip(),
            start_time=str(data.get("startTime", "")),
            week_days=str(data.get("weekDays", "")),
            is_airport=_as_bool(data.get("isAirport")),
            company_id=str(data.get("companyId", "")),
            site_id=str(data.get("siteId", "")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "startTime": self.start_time,
            "weekDays": self.week_days,
            "isAirport": self.is_airport,
            "companyId": self.company_id,
            "siteId": self.site_id,
        }


@dataclass(frozen=True)
class PreferenceSubmission:
    driver_id: str
    ordered_job_ids: tuple[str, ...]
    submission_time: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PreferenceSubmission:
        return cls(
            driver_id=str(data.get("driverId", "")).strip(),
            ordered_job_ids=tuple(str(j) for j in data.get("preferences") or ()),
            submission_time=str(data.get("submissionTime", "")),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "driverId": self.driver_id,
            "preferences": list(self.ordered_job_ids),
            "submissionTime": self.submission_time,
        }


@dataclass(frozen=True)
class ManualAssignment:
    driver_id: str
    job_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManualAssignment:
        return cls(driver_id=str(data.get("driverId", "")), job_id=str(data.get("jobId", "")))

    def as_dict(self) -> dict[str, Any]:
        return {"driverId": self.driver_id, "jobId": self.job_id}


@dataclass(frozen=True)
class Assignment:
    driver_id: str
    job_id: str
    assignment_type: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "driverId": self.driver_id,
            "jobId": self.job_id,
            "assignmentType": self.assignment_type,
        }


@dataclass(frozen=True)
class SkippedManual:
    manual: ManualAssignment
    reason: str

    def as_dict(self) -> dict[str, Any]:
        return {**self.manual.as_dict(), "reason": self.reason}


@dataclass(frozen=True)
class Resolution:
    assignments: tuple[Assignment, ...]
    unassigned_driver_ids: tuple[str, ...]
    open_job_ids: tuple[str, ...]
    skipped_manual: tuple[SkippedManual, ...] = ()
    strategy: str = "pipeline"
    auto_assign_enabled: bool = True

    def by_driver(self) -> dict[str, Assignment]:
        return {a.driver_id: a for a in self.assignments}

    def by_job(self) -> dict[str, Assignment]:
        return {a.job_id: a for a in self.assignments}

    def as_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "autoAssignEnabled": self.auto_assign_enabled,
            "assignments": [a.as_dict() for a in self.assignments],
            "unassignedDriverIds": list(self.unassigned_driver_ids),
            "openJobIds": list(self.open_job_ids),
            "skippedManual": [s.as_dict() for s in self.skipped_manual],
        }


@dataclass(frozen=True)
class Snapshot:
    """A consistent read of one site's roster, preferences and overrides."""

    scope: SiteScope
    drivers: tuple[Driver, ...] = ()
    jobs: tuple[Job, ...] = ()
    submissions: tuple[PreferenceSubmission, ...] = ()
    manual_assignments: tuple[ManualAssignment, ...] = ()
    auto_assign_enabled: bool = True
    meta: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def fingerprint(self) -> str:
        """Stable hash of the resolution inputs, independent of record order."""
        payload = {
            "scope": self.scope.key,
            "drivers": sorted((d.as_dict() for d in self.drivers), key=lambda r: r["employeeId"]),
            "jobs": sorted((j.as_dict() for j in self.jobs), key=lambda r: r["jobId"]),
            # Submission order matters for equal-timestamp tie-breaks.
            "submissions": [s.as_dict() for s in self.submissions],
            "manual": sorted((m.as_dict() for m in self.manual_assignments), key=lambda r: (r["jobId"], r["driverId"])),
            "auto": self.auto_assign_enabled,
        }
        raw = json.dumps(payload, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def as_dict(self) -> dict[str, Any]:
        return {
            "companyId": self.scope.company_id,
            "siteId": self.scope.site_id,
            "drivers": [d.as_dict() for d in self.drivers],
            "jobs": [j.as_dict() for j in self.jobs],
            "preferences": [s.as_dict() for s in self.submissions],
            "manualAssignments": [m.as_dict() for m in self.manual_assignments],
            "autoAssignEnabled": self.auto_assign_enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        return cls(
            scope=SiteScope(str(data.get("companyId", "")), str(data.get("siteId", ""))),
            drivers=tuple(Driver.from_dict(d) for d in data.get("drivers", [])),
            jobs=tuple(Job.from_dict(j) for j in data.get("jobs", [])),
            submissions=tuple(PreferenceSubmission.from_dict(p) for p in data.get("preferences", [])),
            manual_assignments=tuple(ManualAssignment.from_dict(m) for m in data.get("manualAssignments", [])),
            auto_assign_enabled=_as_bool(data.get("autoAssignEnabled", True)),
        )
