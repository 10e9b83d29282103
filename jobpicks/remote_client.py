from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from time import sleep
from typing import Any

import httpx

from assignment_core.models import Driver, Job, ManualAssignment, PreferenceSubmission, SiteScope, Snapshot
from assignment_core.preferences import unique_preferences

from .config import RemoteCredentials
from .errors import ResolutionUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadOperation:
    method: str
    path_template: str


READ_ONLY_OPERATIONS: dict[str, ReadOperation] = {
    "drivers": ReadOperation("GET", "/tables/drivers/items"),
    "jobs": ReadOperation("GET", "/tables/jobs/items"),
    "job_preferences": ReadOperation("GET", "/tables/job_preferences/items"),
    "manual_assignments": ReadOperation("GET", "/tables/manual_assignments/items"),
    "site_settings": ReadOperation("GET", "/tables/site_settings/items"),
}

PAGE_LIMIT = 100


class ReadOnlyRosterClient:
    """Strict read-only client for the hosted roster tables.

    Only the operation names listed in READ_ONLY_OPERATIONS are executable.
    Every tenant-tagged row is checked against the requested scope; rows
    from another company or site are dropped even if the server returns them.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 30.0,
        retries: int = 3,
        backoff_s: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.retries = max(1, retries)
        self.backoff_s = backoff_s
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> ReadOnlyRosterClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self, creds: RemoteCredentials) -> dict[str, str]:
        return {
            "X-Api-Key": creds.api_key,
            "Accept": "application/json",
        }

    def _request(
        self,
        *,
        operation: str,
        creds: RemoteCredentials,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        op = READ_ONLY_OPERATIONS.get(operation)
        if op is None:
            raise ValueError(f"Operation '{operation}' is not allowed in read-only mode")

        last_exc: Exception | None = None
        for attempt in range(self.retries):
            try:
                resp = self._http.request(op.method, op.path_template, headers=self._headers(creds), params=params)
                if resp.status_code >= 500 and attempt < self.retries - 1:
                    logger.warning("%s returned %d, retrying (attempt %d)", operation, resp.status_code, attempt + 1)
                    sleep(self.backoff_s * 2**attempt)
                    continue
                resp.raise_for_status()
                return resp
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_exc = exc
                if attempt < self.retries - 1:
                    logger.warning("%s failed: %s, retrying (attempt %d)", operation, exc, attempt + 1)
                    sleep(self.backoff_s * 2**attempt)
                    continue
                raise
        if last_exc:
            raise last_exc
        raise RuntimeError("request failed without an explicit exception")

    def _list(self, operation: str, creds: RemoteCredentials, query: dict[str, Any]) -> list[dict[str, Any]]:
        cursor: str | None = None
        items: list[dict[str, Any]] = []
        while True:
            params: dict[str, Any] = {**query, "limit": PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor
            payload = self._request(operation=operation, creds=creds, params=params).json() or {}
            if isinstance(payload, list):
                items.extend(payload)
                break
            items.extend(payload.get("items", []))
            if payload.get("has_more") and payload.get("cursor"):
                cursor = payload["cursor"]
            else:
                break
        return items

    def _scoped_rows(self, operation: str, creds: RemoteCredentials, scope: SiteScope) -> list[dict[str, Any]]:
        rows = self._list(operation, creds, {"companyId": scope.company_id, "siteId": scope.site_id})
        kept = [
            r for r in rows
            if str(r.get("companyId", "")) == scope.company_id and str(r.get("siteId", "")) == scope.site_id
        ]
        if len(kept) != len(rows):
            logger.warning("Dropped %d %s row(s) outside %s", len(rows) - len(kept), operation, scope.key)
        return kept

    # -- reads --

    def get_drivers(self, scope: SiteScope, creds: RemoteCredentials) -> list[Driver]:
        return [Driver.from_dict(r) for r in self._scoped_rows("drivers", creds, scope)]

    def get_jobs(self, scope: SiteScope, creds: RemoteCredentials) -> list[Job]:
        return [Job.from_dict(r) for r in self._scoped_rows("jobs", creds, scope)]

    def get_submissions(
        self,
        scope: SiteScope,
        creds: RemoteCredentials,
        *,
        driver_ids: set[str] | None = None,
    ) -> list[PreferenceSubmission]:
        """Preference rows carry no tenant columns; they are kept only for
        drivers on the scope's roster."""
        if driver_ids is None:
            driver_ids = {d.employee_id for d in self.get_drivers(scope, creds)}
        subs = []
        for row in self._list("job_preferences", creds, {"sort": "submissionTime", "order": "desc"}):
            if str(row.get("driverId", "")) not in driver_ids:
                continue
            picks = row.get("preferences") or []
            if isinstance(picks, str):
                picks = json.loads(picks) if picks.strip() else []
            subs.append(PreferenceSubmission.from_dict({**row, "preferences": picks}))
        return subs

    def get_latest_preferences(self, scope: SiteScope, creds: RemoteCredentials) -> dict[str, PreferenceSubmission]:
        return unique_preferences(self.get_submissions(scope, creds))

    def get_manual_assignments(self, scope: SiteScope, creds: RemoteCredentials) -> list[ManualAssignment]:
        return [ManualAssignment.from_dict(r) for r in self._scoped_rows("manual_assignments", creds, scope)]

    def get_auto_assign_toggle(self, scope: SiteScope, creds: RemoteCredentials) -> bool:
        rows = self._scoped_rows("site_settings", creds, scope)
        if not rows:
            return True
        return str(rows[0].get("disableAutoAssignments", "false")).strip().lower() != "true"

    def snapshot(self, scope: SiteScope, creds: RemoteCredentials) -> Snapshot:
        """Read all five inputs; any transport failure becomes ResolutionUnavailable."""
        try:
            drivers = self.get_drivers(scope, creds)
            jobs = self.get_jobs(scope, creds)
            submissions = self.get_submissions(scope, creds, driver_ids={d.employee_id for d in drivers})
            manual = self.get_manual_assignments(scope, creds)
            auto = self.get_auto_assign_toggle(scope, creds)
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            raise ResolutionUnavailable(f"Remote read for {scope.key} failed: {exc}") from exc
        return Snapshot(
            scope=scope,
            drivers=tuple(drivers),
            jobs=tuple(jobs),
            submissions=tuple(submissions),
            manual_assignments=tuple(manual),
            auto_assign_enabled=auto,
            meta={"source": self.base_url},
        )
