from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from assignment_core.mechanisms import STRATEGIES


@dataclass(frozen=True)
class RemoteCredentials:
    company_id: str
    api_key: str


@dataclass(frozen=True)
class RuntimeConfig:
    artifact_root: Path
    remote_base_url: str | None
    default_strategy: str
    log_level: str


@dataclass(frozen=True)
class SiteSettings:
    auto_assign_enabled: bool = True
    strategy: str = "pipeline"


def load_env(dotenv_path: str | Path | None = None) -> None:
    path = Path(dotenv_path) if dotenv_path else None
    if path and path.exists():
        load_dotenv(path)
        return
    load_dotenv()


def runtime_config() -> RuntimeConfig:
    artifact_root = Path(os.getenv("JOBPICKS_ARTIFACT_DIR", "./artifacts")).expanduser().resolve()
    remote_base_url = os.getenv("JOBPICKS_REMOTE_BASE_URL", "").strip().rstrip("/") or None
    default_strategy = os.getenv("JOBPICKS_DEFAULT_STRATEGY", "pipeline").strip() or "pipeline"
    if default_strategy not in STRATEGIES:
        raise ValueError(f"JOBPICKS_DEFAULT_STRATEGY must be one of {STRATEGIES}, got {default_strategy!r}")
    log_level = os.getenv("JOBPICKS_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    artifact_root.mkdir(parents=True, exist_ok=True)
    return RuntimeConfig(
        artifact_root=artifact_root,
        remote_base_url=remote_base_url,
        default_strategy=default_strategy,
        log_level=log_level,
    )


def get_remote_credentials(company_id: str) -> RemoteCredentials:
    key_var = f"JOBPICKS_API_KEY_{company_id.upper()}"
    api_key = os.getenv(key_var, "").strip()
    if not api_key:
        available = list_configured_companies()
        raise ValueError(
            f"Missing remote credentials for '{company_id}'. "
            f"Expected env var {key_var}. "
            f"Configured companies: {available or 'none'}"
        )
    return RemoteCredentials(company_id=company_id, api_key=api_key)


def list_configured_companies() -> list[str]:
    result: list[str] = []
    for name, value in os.environ.items():
        if not name.startswith("JOBPICKS_API_KEY_") or not value.strip():
            continue
        result.append(name[len("JOBPICKS_API_KEY_") :])
    return sorted(set(result))


def load_site_settings(settings_file: Path | None = None) -> dict[str, SiteSettings]:
    """Per-site defaults keyed ``COMPANY/SITE``. A missing file means no overrides."""
    if settings_file is None:
        settings_file = Path(__file__).resolve().parent.parent / "config" / "site_settings.json"
    if not settings_file.exists():
        return {}
    with settings_file.open("r", encoding="utf-8") as fh:
        raw: dict[str, Any] = json.load(fh)

    settings: dict[str, SiteSettings] = {}
    for key, value in raw.items():
        strategy = str(value.get("strategy", "pipeline"))
        if strategy not in STRATEGIES:
            raise ValueError(f"Site {key}: unknown strategy {strategy!r}")
        settings[key] = SiteSettings(
            auto_assign_enabled=bool(value.get("auto_assign_enabled", True)),
            strategy=strategy,
        )
    return settings
