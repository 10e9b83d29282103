"""Site-scoped roster, preference and override stores.

Every read and write names a ``SiteScope``; records from one site are never
visible from another. Writes are validated here, at the boundary, so the
resolver only ever sees well-formed snapshots. A per-site version counter
moves on every committed write.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from assignment_core.models import (
    Driver,
    Job,
    ManualAssignment,
    PreferenceSubmission,
    SiteScope,
    Snapshot,
    is_valid_employee_id,
)
from assignment_core.preferences import find_duplicate_picks, unique_preferences
from assignment_core.time_utils import now_utc_iso, parse_hhmm_to_minutes

from .config import SiteSettings
from .errors import NotFoundError, ResolutionUnavailable, ValidationError
from .storage import load_site_state, save_site_state

logger = logging.getLogger(__name__)


@dataclass
class _SiteData:
    drivers: dict[str, Driver] = field(default_factory=dict)
    jobs: dict[str, Job] = field(default_factory=dict)
    submissions: list[PreferenceSubmission] = field(default_factory=list)
    manual: dict[str, str] = field(default_factory=dict)  # job_id -> driver_id
    auto_assign_enabled: bool = True
    version: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "autoAssignEnabled": self.auto_assign_enabled,
            "drivers": [d.as_dict() for d in self.drivers.values()],
            "jobs": [j.as_dict() for j in self.jobs.values()],
            "preferences": [s.as_dict() for s in self.submissions],
            "manualAssignments": [
                {"driverId": driver_id, "jobId": job_id} for job_id, driver_id in self.manual.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> _SiteData:
        drivers = [Driver.from_dict(d) for d in data.get("drivers", [])]
        jobs = [Job.from_dict(j) for j in data.get("jobs", [])]
        return cls(
            drivers={d.employee_id: d for d in drivers},
            jobs={j.job_id: j for j in jobs},
            submissions=[PreferenceSubmission.from_dict(p) for p in data.get("preferences", [])],
            manual={str(m["jobId"]): str(m["driverId"]) for m in data.get("manualAssignments", [])},
            auto_assign_enabled=bool(data.get("autoAssignEnabled", True)),
            version=int(data.get("version", 0)),
        )

    def copy(self) -> _SiteData:
        return _SiteData(
            drivers=dict(self.drivers),
            jobs=dict(self.jobs),
            submissions=list(self.submissions),
            manual=dict(self.manual),
            auto_assign_enabled=self.auto_assign_enabled,
            version=self.version,
        )


def _require_scope(scope: SiteScope) -> None:
    if not isinstance(scope, SiteScope) or not scope.company_id.strip() or not scope.site_id.strip():
        raise ValidationError(f"A company and site scope is required, got {scope!r}")


def _bind_scope(record, scope: SiteScope):
    """Stamp the scope onto a record; a record already tagged for another site is rejected."""
    for attr, expected in (("company_id", scope.company_id), ("site_id", scope.site_id)):
        value = getattr(record, attr)
        if value and value != expected:
            raise ValidationError(f"Record {attr}={value!r} does not match scope {scope.key}")
    return replace(record, company_id=scope.company_id, site_id=scope.site_id)


def _validate_driver(driver: Driver) -> None:
    if not is_valid_employee_id(driver.employee_id):
        raise ValidationError(f"Employee id must be exactly 7 digits, got {driver.employee_id!r}")
    if not isinstance(driver.seniority_number, int) or driver.seniority_number < 0:
        raise ValidationError(f"Seniority number must be a non-negative integer, got {driver.seniority_number!r}")


def _validate_job(job: Job) -> None:
    if not job.job_id.strip():
        raise ValidationError("Job id must not be blank")
    if job.start_time and parse_hhmm_to_minutes(job.start_time) is None:
        raise ValidationError(f"Start time must be HH:MM, got {job.start_time!r}")


class SiteStore:
    """In-memory store for every site, optionally mirrored to JSON files."""

    def __init__(
        self,
        artifact_root: Path | None = None,
        *,
        settings: Mapping[str, SiteSettings] | None = None,
    ):
        self._lock = threading.RLock()
        self._sites: dict[SiteScope, _SiteData] = {}
        self._artifact_root = Path(artifact_root) if artifact_root else None
        self._settings = dict(settings or {})

    # -- internals --

    def _site(self, scope: SiteScope) -> _SiteData:
        _require_scope(scope)
        data = self._sites.get(scope)
        if data is None:
            data = self._load(scope)
            self._sites[scope] = data
        return data

    def _load(self, scope: SiteScope) -> _SiteData:
        if self._artifact_root is not None:
            try:
                raw = load_site_state(self._artifact_root, scope)
            except (OSError, json.JSONDecodeError) as exc:
                raise ResolutionUnavailable(f"Site state for {scope.key} is unreadable: {exc}") from exc
            if raw is not None:
                return _SiteData.from_dict(raw)
        site_settings = self._settings.get(scope.key)
        return _SiteData(auto_assign_enabled=site_settings.auto_assign_enabled if site_settings else True)

    def _commit(self, scope: SiteScope, data: _SiteData, action: str, detail: str = "") -> None:
        """Persist a staged copy as the next version, then make it visible.

        Writers mutate a copy of the site; if persisting fails the live
        site and its version are untouched.
        """
        data.version += 1
        if self._artifact_root is not None:
            save_site_state(self._artifact_root, scope, data.as_dict())
        self._sites[scope] = data
        logger.info("%s %s %s (version %d)", scope.key, action, detail, data.version)

    # -- drivers --

    def add_driver(self, scope: SiteScope, driver: Driver) -> Driver:
        with self._lock:
            data = self._site(scope).copy()
            driver = _bind_scope(driver, scope)
            _validate_driver(driver)
            if driver.employee_id in data.drivers:
                raise ValidationError(f"Driver {driver.employee_id} already exists in {scope.key}")
            data.drivers[driver.employee_id] = driver
            self._commit(scope, data, "add_driver", driver.employee_id)
            return driver

    def update_driver(self, scope: SiteScope, driver: Driver) -> Driver:
        with self._lock:
            data = self._site(scope).copy()
            driver = _bind_scope(driver, scope)
            _validate_driver(driver)
            if driver.employee_id not in data.drivers:
                raise NotFoundError(f"Driver {driver.employee_id} not found in {scope.key}")
            data.drivers[driver.employee_id] = driver
            self._commit(scope, data, "update_driver", driver.employee_id)
            return driver

    def delete_driver(self, scope: SiteScope, employee_id: str) -> None:
        with self._lock:
            data = self._site(scope).copy()
            if employee_id not in data.drivers:
                raise NotFoundError(f"Driver {employee_id} not found in {scope.key}")
            del data.drivers[employee_id]
            # Preferences stay; cleaning drops them at resolution time.
            data.manual = {j: d for j, d in data.manual.items() if d != employee_id}
            self._commit(scope, data, "delete_driver", employee_id)

    # -- jobs --

    def add_job(self, scope: SiteScope, job: Job) -> Job:
        with self._lock:
            data = self._site(scope).copy()
            job = _bind_scope(job, scope)
            _validate_job(job)
            if job.job_id in data.jobs:
                raise ValidationError(f"Job {job.job_id} already exists in {scope.key}")
            data.jobs[job.job_id] = job
            self._commit(scope, data, "add_job", job.job_id)
            return job

    def update_job(self, scope: SiteScope, job: Job) -> Job:
        with self._lock:
            data = self._site(scope).copy()
            job = _bind_scope(job, scope)
            _validate_job(job)
            if job.job_id not in data.jobs:
                raise NotFoundError(f"Job {job.job_id} not found in {scope.key}")
            data.jobs[job.job_id] = job
            self._commit(scope, data, "update_job", job.job_id)
            return job

    def delete_job(self, scope: SiteScope, job_id: str) -> None:
        with self._lock:
            data = self._site(scope).copy()
            if job_id not in data.jobs:
                raise NotFoundError(f"Job {job_id} not found in {scope.key}")
            del data.jobs[job_id]
            data.manual.pop(job_id, None)
            self._commit(scope, data, "delete_job", job_id)

    # -- preferences --

    def submit_preferences(
        self,
        scope: SiteScope,
        driver_id: str,
        ordered_job_ids: Iterable[str],
        submission_time: str | None = None,
    ) -> PreferenceSubmission:
        ordered = tuple(str(j) for j in ordered_job_ids)
        with self._lock:
            data = self._site(scope).copy()
            if driver_id not in data.drivers:
                raise ValidationError(f"Unknown driver {driver_id} in {scope.key}")
            dupes = find_duplicate_picks(ordered)
            if dupes:
                raise ValidationError(f"Duplicate jobs in preference list: {dupes}")
            unknown = [j for j in ordered if j not in data.jobs]
            if unknown:
                raise ValidationError(f"Unknown jobs in preference list: {unknown}")
            submission = PreferenceSubmission(driver_id, ordered, submission_time or now_utc_iso())
            data.submissions.append(submission)
            self._commit(scope, data, "submit_preferences", f"{driver_id} ({len(ordered)} picks)")
            return submission

    # -- manual assignments --

    def _check_pin(self, scope: SiteScope, data: _SiteData, driver_id: str, job_id: str) -> None:
        driver = data.drivers.get(driver_id)
        if driver is None:
            raise ValidationError(f"Unknown driver {driver_id} in {scope.key}")
        job = data.jobs.get(job_id)
        if job is None:
            raise ValidationError(f"Unknown job {job_id} in {scope.key}")
        if not driver.is_eligible:
            raise ValidationError(f"Driver {driver_id} is not eligible")
        if job.is_airport and not driver.airport_certified:
            raise ValidationError(f"Driver {driver_id} is not airport certified for job {job_id}")

    def set_manual_assignment(self, scope: SiteScope, driver_id: str, job_id: str) -> ManualAssignment:
        """Pin a driver to a job. An existing pin on the same job is replaced."""
        with self._lock:
            data = self._site(scope).copy()
            self._check_pin(scope, data, driver_id, job_id)
            for pinned_job, pinned_driver in data.manual.items():
                if pinned_driver == driver_id and pinned_job != job_id:
                    raise ValidationError(f"Driver {driver_id} is already pinned to job {pinned_job}")
            data.manual[job_id] = driver_id
            self._commit(scope, data, "set_manual_assignment", f"{driver_id}->{job_id}")
            return ManualAssignment(driver_id, job_id)

    def set_manual_assignments(self, scope: SiteScope, pins: Iterable[ManualAssignment]) -> list[ManualAssignment]:
        """Apply a batch of pins all-or-nothing."""
        pins = list(pins)
        with self._lock:
            data = self._site(scope).copy()
            by_job: dict[str, str] = {}
            by_driver: dict[str, str] = {}
            for pin in pins:
                self._check_pin(scope, data, pin.driver_id, pin.job_id)
                if by_job.get(pin.job_id, pin.driver_id) != pin.driver_id:
                    raise ValidationError(f"Conflicting pins for job {pin.job_id} in one batch")
                if by_driver.get(pin.driver_id, pin.job_id) != pin.job_id:
                    raise ValidationError(f"Driver {pin.driver_id} pinned to more than one job in one batch")
                by_job[pin.job_id] = pin.driver_id
                by_driver[pin.driver_id] = pin.job_id

            merged = {j: d for j, d in data.manual.items() if j not in by_job}
            for pinned_job, pinned_driver in merged.items():
                if pinned_driver in by_driver:
                    raise ValidationError(f"Driver {pinned_driver} is already pinned to job {pinned_job}")
            merged.update(by_job)
            data.manual = merged
            self._commit(scope, data, "set_manual_assignments", f"{len(by_job)} pin(s)")
            return [ManualAssignment(d, j) for j, d in sorted(by_job.items())]

    def remove_manual_assignment(self, scope: SiteScope, job_id: str) -> None:
        with self._lock:
            data = self._site(scope).copy()
            if job_id not in data.manual:
                raise NotFoundError(f"No manual assignment for job {job_id} in {scope.key}")
            del data.manual[job_id]
            self._commit(scope, data, "remove_manual_assignment", job_id)

    # -- toggle --

    def set_auto_assign(self, scope: SiteScope, enabled: bool) -> bool:
        with self._lock:
            data = self._site(scope).copy()
            data.auto_assign_enabled = bool(enabled)
            self._commit(scope, data, "set_auto_assign", str(data.auto_assign_enabled))
            return data.auto_assign_enabled

    # -- bulk import --

    def replace_site(self, scope: SiteScope, snapshot: Snapshot) -> int:
        """Replace a site's contents with ``snapshot``. Returns the new version.

        The import is checked with the same rules as the single-record
        writers and applied all-or-nothing. Picks naming jobs that are not in
        the import are kept; cleaning drops them at resolution time.
        """
        with self._lock:
            current = self._site(scope)
            data = _SiteData(auto_assign_enabled=snapshot.auto_assign_enabled, version=current.version)
            for d in snapshot.drivers:
                d = _bind_scope(d, scope)
                _validate_driver(d)
                if d.employee_id in data.drivers:
                    raise ValidationError(f"Duplicate driver {d.employee_id} in import")
                data.drivers[d.employee_id] = d
            for j in snapshot.jobs:
                j = _bind_scope(j, scope)
                _validate_job(j)
                if j.job_id in data.jobs:
                    raise ValidationError(f"Duplicate job {j.job_id} in import")
                data.jobs[j.job_id] = j

            for sub in snapshot.submissions:
                if sub.driver_id not in data.drivers:
                    raise ValidationError(f"Preferences for unknown driver {sub.driver_id} in import")
                dupes = find_duplicate_picks(sub.ordered_job_ids)
                if dupes:
                    raise ValidationError(f"Duplicate jobs in preference list of {sub.driver_id}: {dupes}")
                data.submissions.append(sub)

            by_driver: dict[str, str] = {}
            for pin in sorted(snapshot.manual_assignments, key=lambda m: (m.job_id, m.driver_id)):
                self._check_pin(scope, data, pin.driver_id, pin.job_id)
                if pin.job_id in data.manual:
                    raise ValidationError(f"Conflicting pins for job {pin.job_id} in import")
                if pin.driver_id in by_driver:
                    raise ValidationError(f"Driver {pin.driver_id} pinned to more than one job in import")
                data.manual[pin.job_id] = pin.driver_id
                by_driver[pin.driver_id] = pin.job_id

            self._commit(scope, data, "replace_site", f"{len(data.drivers)} drivers, {len(data.jobs)} jobs")
            return data.version

    # -- reads --

    def get_drivers(self, scope: SiteScope) -> list[Driver]:
        with self._lock:
            drivers = list(self._site(scope).drivers.values())
        drivers.sort(key=lambda d: (d.seniority_number, d.employee_id))
        return drivers

    def get_jobs(self, scope: SiteScope) -> list[Job]:
        with self._lock:
            jobs = list(self._site(scope).jobs.values())
        jobs.sort(key=lambda j: j.job_id)
        return jobs

    def get_submissions(self, scope: SiteScope) -> list[PreferenceSubmission]:
        with self._lock:
            return list(self._site(scope).submissions)

    def get_latest_preferences(self, scope: SiteScope) -> dict[str, PreferenceSubmission]:
        """Latest submission per driver; not yet cleaned against the roster."""
        return unique_preferences(self.get_submissions(scope))

    def get_manual_assignments(self, scope: SiteScope) -> list[ManualAssignment]:
        with self._lock:
            manual = self._site(scope).manual
            return [ManualAssignment(driver_id, job_id) for job_id, driver_id in sorted(manual.items())]

    def get_auto_assign_toggle(self, scope: SiteScope) -> bool:
        with self._lock:
            return self._site(scope).auto_assign_enabled

    def version(self, scope: SiteScope) -> int:
        with self._lock:
            return self._site(scope).version

    def snapshot(self, scope: SiteScope) -> Snapshot:
        """All five inputs read under one lock, so no write is half visible."""
        with self._lock:
            data = self._site(scope)
            return Snapshot(
                scope=scope,
                drivers=tuple(data.drivers.values()),
                jobs=tuple(data.jobs.values()),
                submissions=tuple(data.submissions),
                manual_assignments=tuple(
                    ManualAssignment(driver_id, job_id) for job_id, driver_id in sorted(data.manual.items())
                ),
                auto_assign_enabled=data.auto_assign_enabled,
                meta={"version": data.version},
            )
