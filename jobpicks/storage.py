from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from assignment_core.models import SiteScope

logger = logging.getLogger(__name__)


def _json_dump(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)


def _json_load(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def sites_root(artifact_root: Path) -> Path:
    path = artifact_root / "sites"
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolution_root(artifact_root: Path) -> Path:
    path = artifact_root / "resolutions"
    path.mkdir(parents=True, exist_ok=True)
    return path


def export_root(artifact_root: Path) -> Path:
    path = artifact_root / "exports"
    path.mkdir(parents=True, exist_ok=True)
    return path


# -- Site state ----------------------------------------------------------------

def site_state_path(artifact_root: Path, scope: SiteScope) -> Path:
    return sites_root(artifact_root) / scope.company_id / scope.site_id / "state.json"


def save_site_state(artifact_root: Path, scope: SiteScope, state: dict[str, Any]) -> Path:
    path = site_state_path(artifact_root, scope)
    _json_dump(path, state)
    return path


def load_site_state(artifact_root: Path, scope: SiteScope) -> dict[str, Any] | None:
    path = site_state_path(artifact_root, scope)
    if not path.exists():
        return None
    return _json_load(path)


# -- Resolution artifacts --------------------------------------------------------

def save_resolution(artifact_root: Path, record: dict[str, Any]) -> Path:
    """Persist a resolution record and point ``latest.json`` at it.

    ``record`` must carry ``resolution_id``; the manifest copies the fields
    needed for listing without loading the payload.
    """
    root = resolution_root(artifact_root)
    rid = record["resolution_id"]
    target = root / rid
    _json_dump(target / "resolution.json", record)

    manifest = {
        "resolution_id": rid,
        "company_id": record.get("company_id"),
        "site_id": record.get("site_id"),
        "strategy": record.get("strategy"),
        "fingerprint": record.get("fingerprint"),
        "generated_at": record.get("generated_at"),
        "counts": {
            "assignments": len(record.get("resolution", {}).get("assignments", [])),
            "open_jobs": len(record.get("resolution", {}).get("openJobIds", [])),
            "unassigned_drivers": len(record.get("resolution", {}).get("unassignedDriverIds", [])),
        },
        "path": str(target.resolve()),
    }
    _json_dump(target / "manifest.json", manifest)
    _json_dump(root / "latest.json", manifest)
    return target


def list_resolutions(
    artifact_root: Path,
    limit: int = 20,
    scope: SiteScope | None = None,
) -> list[dict[str, Any]]:
    root = resolution_root(artifact_root)
    manifests: list[dict[str, Any]] = []
    for child in root.iterdir():
        if not child.is_dir():
            continue
        manifest_file = child / "manifest.json"
        if not manifest_file.exists():
            continue
        try:
            manifest = _json_load(manifest_file)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Skipping unreadable manifest %s: %s", manifest_file, exc)
            continue
        if scope is not None and (manifest.get("company_id"), manifest.get("site_id")) != (
            scope.company_id,
            scope.site_id,
        ):
            continue
        manifests.append(manifest)
    manifests.sort(key=lambda row: row.get("generated_at") or "", reverse=True)
    return manifests[:limit]


def load_resolution(artifact_root: Path, resolution_id: str | None = None) -> dict[str, Any]:
    root = resolution_root(artifact_root)
    if resolution_id:
        manifest_path = root / resolution_id / "manifest.json"
    else:
        manifest_path = root / "latest.json"
    if not manifest_path.exists():
        raise FileNotFoundError("resolution manifest not found")
    manifest = _json_load(manifest_path)
    rid = manifest["resolution_id"]
    path = root / rid / "resolution.json"
    if not path.exists():
        raise FileNotFoundError(f"resolution payload not found: {rid}")
    return _json_load(path)
