"""Resolution on top of the site store, memoised per input fingerprint."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import uuid4

from assignment_core.comparison import compare_resolutions
from assignment_core.constraints import validate_resolution
from assignment_core.mechanisms import STRATEGIES, run_all, run_strategy, snapshot_preferences
from assignment_core.models import Resolution, SiteScope, Snapshot
from assignment_core.reporting import assignment_rows, site_statistics, summarize_resolution
from assignment_core.time_utils import now_utc_iso

from .config import SiteSettings
from .errors import ResolutionUnavailable
from .storage import save_resolution
from .stores import SiteStore

logger = logging.getLogger(__name__)


class AssignmentService:
    """Reads a consistent snapshot, resolves it and caches the result.

    The cache key includes the snapshot fingerprint, so any committed write
    to the site yields a new key and the stale entry is dropped.
    """

    def __init__(
        self,
        store: SiteStore,
        *,
        default_strategy: str = "pipeline",
        settings: Mapping[str, SiteSettings] | None = None,
        artifact_root: Path | None = None,
    ):
        if default_strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {default_strategy!r}. Choose from {STRATEGIES}")
        self.store = store
        self.default_strategy = default_strategy
        self.settings = dict(settings or {})
        self.artifact_root = Path(artifact_root) if artifact_root else None
        self._lock = threading.Lock()
        self._cache: dict[tuple[SiteScope, str, str], Resolution] = {}
        self.hits = 0
        self.misses = 0

    def strategy_for(self, scope: SiteScope, strategy: str | None = None) -> str:
        if strategy:
            return strategy
        site = self.settings.get(scope.key)
        return site.strategy if site else self.default_strategy

    def snapshot(self, scope: SiteScope) -> Snapshot:
        try:
            return self.store.snapshot(scope)
        except (OSError, json.JSONDecodeError) as exc:
            raise ResolutionUnavailable(f"Could not read inputs for {scope.key}: {exc}") from exc

    def resolve(self, scope: SiteScope, strategy: str | None = None) -> Resolution:
        return self._resolve(self.snapshot(scope), self.strategy_for(scope, strategy))

    def _resolve(self, snapshot: Snapshot, strategy: str) -> Resolution:
        key = (snapshot.scope, snapshot.fingerprint(), strategy)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self.hits += 1
                return cached

        resolution = run_strategy(
            strategy,
            snapshot.drivers,
            snapshot.jobs,
            snapshot_preferences(snapshot),
            snapshot.manual_assignments,
            snapshot.auto_assign_enabled,
        )
        logger.info(
            "Resolved %s with %s: %d assigned, %d open, %d waiting",
            snapshot.scope.key,
            strategy,
            len(resolution.assignments),
            len(resolution.open_job_ids),
            len(resolution.unassigned_driver_ids),
        )

        with self._lock:
            self.misses += 1
            for stale in [k for k in self._cache if k[0] == snapshot.scope and k[1] != key[1]]:
                del self._cache[stale]
            self._cache[key] = resolution
        return resolution

    def report(self, scope: SiteScope, strategy: str | None = None) -> dict[str, Any]:
        """Dashboard summary; ``status`` is ``empty`` when nothing is assigned."""
        snap = self.snapshot(scope)
        resolution = self._resolve(snap, self.strategy_for(scope, strategy))
        summary = summarize_resolution(resolution, snap.drivers, snap.jobs, snapshot_preferences(snap))
        summary["company_id"] = scope.company_id
        summary["site_id"] = scope.site_id
        summary["fingerprint"] = snap.fingerprint()
        return summary

    def rows(self, scope: SiteScope, strategy: str | None = None) -> list[dict[str, Any]]:
        snap = self.snapshot(scope)
        resolution = self._resolve(snap, self.strategy_for(scope, strategy))
        return assignment_rows(resolution, snap.drivers, snap.jobs, snapshot_preferences(snap))

    def statistics(self, scope: SiteScope) -> dict[str, Any]:
        snap = self.snapshot(scope)
        return site_statistics(snap.drivers, snap.jobs, snapshot_preferences(snap))

    def audit(self, scope: SiteScope, strategy: str | None = None) -> list[dict[str, Any]]:
        snap = self.snapshot(scope)
        resolution = self._resolve(snap, self.strategy_for(scope, strategy))
        return validate_resolution(resolution, snap.drivers, snap.jobs, snap.manual_assignments)

    def compare(self, scope: SiteScope) -> dict[str, Any]:
        return compare_resolutions(run_all(self.snapshot(scope)))

    def save(self, scope: SiteScope, strategy: str | None = None) -> dict[str, Any]:
        """Persist the current resolution as an artifact and return its manifest fields."""
        if self.artifact_root is None:
            raise ValueError("No artifact root configured")
        snap = self.snapshot(scope)
        name = self.strategy_for(scope, strategy)
        resolution = self._resolve(snap, name)
        record = {
            "resolution_id": f"res-{uuid4().hex[:12]}",
            "company_id": scope.company_id,
            "site_id": scope.site_id,
            "strategy": name,
            "fingerprint": snap.fingerprint(),
            "generated_at": now_utc_iso(),
            "resolution": resolution.as_dict(),
            "summary": summarize_resolution(resolution, snap.drivers, snap.jobs, snapshot_preferences(snap)),
        }
        target = save_resolution(self.artifact_root, record)
        return {"resolution_id": record["resolution_id"], "path": str(target)}

    def export(self, scope: SiteScope, directory: Path, *, strategy: str | None = None, xlsx: bool = False) -> dict[str, str]:
        from assignment_core.io import render_xlsx, write_output

        snap = self.snapshot(scope)
        resolution = self._resolve(snap, self.strategy_for(scope, strategy))
        paths = write_output(resolution, snap, directory)
        if xlsx:
            paths["assignments.xlsx"] = render_xlsx(resolution, snap, Path(directory) / "assignments.xlsx")
        return {name: str(p) for name, p in paths.items()}
