"""jobpicks MCP server.

Exposes tools for roster and job maintenance, preference submission,
manual pins, the auto-assign toggle, resolution, reporting, exports and
strategy comparison. Every tool is scoped to one company/site.
"""
from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from assignment_core.models import Driver, Job, ManualAssignment, SiteScope

from .config import get_remote_credentials, load_env, load_site_settings, runtime_config
from .remote_client import ReadOnlyRosterClient
from .service import AssignmentService
from .storage import export_root, list_resolutions as _list_resolutions, load_resolution as _load_resolution
from .stores import SiteStore

mcp = FastMCP(
    "jobpicks",
    host=os.getenv("HOST", "127.0.0.1"),
    port=int(os.getenv("PORT", "8000")),
    instructions=(
        "Driver job-pick engine. Maintains per-site rosters, jobs and "
        "preference submissions, resolves them into one job per driver "
        "(manual pins, picks by seniority, then fallback passes) and reports "
        "the outcome. Every call names a company and a site."
    ),
)

_ENV_FILE: str | None = None
_SERVICE: AssignmentService | None = None


def _service() -> AssignmentService:
    global _SERVICE
    if _SERVICE is None:
        load_env(_ENV_FILE or os.getenv("JOBPICKS_ENV_FILE"))
        cfg = runtime_config()
        settings = load_site_settings()
        store = SiteStore(cfg.artifact_root, settings=settings)
        _SERVICE = AssignmentService(
            store,
            default_strategy=cfg.default_strategy,
            settings=settings,
            artifact_root=cfg.artifact_root,
        )
    return _SERVICE


def _scope(company_id: str, site_id: str) -> SiteScope:
    return SiteScope(company_id.strip(), site_id.strip())


# -- Roster --

@mcp.tool()
def list_drivers(company_id: str, site_id: str) -> list[dict[str, Any]]:
    """List drivers of a site, most senior first."""
    return [d.as_dict() for d in _service().store.get_drivers(_scope(company_id, site_id))]


@mcp.tool()
def upsert_driver(
    company_id: str,
    site_id: str,
    employee_id: str,
    name: str,
    seniority_number: int,
    vc_status: bool = False,
    airport_certified: bool = False,
    is_eligible: bool = True,
) -> dict[str, Any]:
    """Add a driver, or replace the record if the employee id already exists."""
    scope = _scope(company_id, site_id)
    store = _service().store
    driver = Driver(employee_id, name, seniority_number, vc_status, airport_certified, is_eligible)
    known = {d.employee_id for d in store.get_drivers(scope)}
    saved = store.update_driver(scope, driver) if employee_id in known else store.add_driver(scope, driver)
    return saved.as_dict()


@mcp.tool()
def delete_driver(company_id: str, site_id: str, employee_id: str) -> dict[str, Any]:
    """Remove a driver. Their picks are ignored from then on."""
    _service().store.delete_driver(_scope(company_id, site_id), employee_id)
    return {"deleted": employee_id}


@mcp.tool()
def list_jobs(company_id: str, site_id: str) -> list[dict[str, Any]]:
    """List jobs of a site."""
    return [j.as_dict() for j in _service().store.get_jobs(_scope(company_id, site_id))]


@mcp.tool()
def upsert_job(
    company_id: str,
    site_id: str,
    job_id: str,
    start_time: str = "",
    week_days: str = "",
    is_airport: bool = False,
) -> dict[str, Any]:
    """Add a job, or replace it if the job id already exists."""
    scope = _scope(company_id, site_id)
    store = _service().store
    job = Job(job_id, start_time, week_days, is_airport)
    known = {j.job_id for j in store.get_jobs(scope)}
    saved = store.update_job(scope, job) if job_id in known else store.add_job(scope, job)
    return saved.as_dict()


@mcp.tool()
def delete_job(company_id: str, site_id: str, job_id: str) -> dict[str, Any]:
    """Remove a job. Picks naming it are dropped at resolution time."""
    _service().store.delete_job(_scope(company_id, site_id), job_id)
    return {"deleted": job_id}


@mcp.tool()
def import_site(company_id: str, site_id: str, input_dir: str) -> dict[str, Any]:
    """Replace a site's data with a CSV input directory (meta.json, drivers.csv, jobs.csv, ...)."""
    from assignment_core.io import load_input

    scope = _scope(company_id, site_id)
    snapshot = load_input(Path(input_dir))
    version = _service().store.replace_site(scope, snapshot)
    return {
        "version": version,
        "drivers": len(snapshot.drivers),
        "jobs": len(snapshot.jobs),
        "preferences": len(snapshot.submissions),
        "manual_assignments": len(snapshot.manual_assignments),
    }


@mcp.tool()
def sync_remote(company_id: str, site_id: str) -> dict[str, Any]:
    """Copy a site's data from the hosted roster tables into the local store."""
    cfg = runtime_config()
    if not cfg.remote_base_url:
        raise ValueError("JOBPICKS_REMOTE_BASE_URL is not configured")
    scope = _scope(company_id, site_id)
    creds = get_remote_credentials(company_id)
    with ReadOnlyRosterClient(base_url=cfg.remote_base_url) as client:
        snapshot = client.snapshot(scope, creds)
    version = _service().store.replace_site(scope, snapshot)
    return {"version": version, "drivers": len(snapshot.drivers), "jobs": len(snapshot.jobs)}


# -- Picks and overrides --

@mcp.tool()
def submit_preferences(
    company_id: str,
    site_id: str,
    driver_id: str,
    job_ids: list[str],
    submission_time: str | None = None,
) -> dict[str, Any]:
    """Record a driver's ranked job list. The latest submission wins."""
    sub = _service().store.submit_preferences(_scope(company_id, site_id), driver_id, job_ids, submission_time)
    return sub.as_dict()


@mcp.tool()
def get_latest_preferences(company_id: str, site_id: str) -> dict[str, list[str]]:
    """Latest ranked list per driver, as submitted."""
    prefs = _service().store.get_latest_preferences(_scope(company_id, site_id))
    return {driver_id: list(sub.ordered_job_ids) for driver_id, sub in sorted(prefs.items())}


@mcp.tool()
def set_manual_assignment(company_id: str, site_id: str, driver_id: str, job_id: str) -> dict[str, Any]:
    """Pin a driver to a job; the pin overrides every pick and fallback."""
    return _service().store.set_manual_assignment(_scope(company_id, site_id), driver_id, job_id).as_dict()


@mcp.tool()
def set_manual_assignments(company_id: str, site_id: str, pins: list[dict[str, str]]) -> list[dict[str, Any]]:
    """Apply several pins at once ([{driverId, jobId}, ...]); all or nothing."""
    saved = _service().store.set_manual_assignments(
        _scope(company_id, site_id), [ManualAssignment.from_dict(p) for p in pins],
    )
    return [p.as_dict() for p in saved]


@mcp.tool()
def remove_manual_assignment(company_id: str, site_id: str, job_id: str) -> dict[str, Any]:
    """Drop the pin on a job."""
    _service().store.remove_manual_assignment(_scope(company_id, site_id), job_id)
    return {"removed": job_id}


@mcp.tool()
def set_auto_assign(company_id: str, site_id: str, enabled: bool) -> dict[str, Any]:
    """Switch the fallback passes on or off for a site."""
    return {"auto_assign_enabled": _service().store.set_auto_assign(_scope(company_id, site_id), enabled)}


# -- Resolution and reporting --

@mcp.tool()
def resolve_assignments(company_id: str, site_id: str, strategy: str | None = None) -> dict[str, Any]:
    """Compute the current assignment set. Cheap to call repeatedly."""
    return _service().resolve(_scope(company_id, site_id), strategy).as_dict()


@mcp.tool()
def assignment_report(company_id: str, site_id: str, strategy: str | None = None) -> dict[str, Any]:
    """Counts by type and classification, pick rates and what is left open."""
    return _service().report(_scope(company_id, site_id), strategy)


@mcp.tool()
def final_assignments(company_id: str, site_id: str, strategy: str | None = None) -> list[dict[str, Any]]:
    """Assignment rows joined with driver and job details, most senior first."""
    return _service().rows(_scope(company_id, site_id), strategy)


@mcp.tool()
def site_statistics(company_id: str, site_id: str) -> dict[str, Any]:
    """Submission rate and start-time and weekday distributions."""
    return _service().statistics(_scope(company_id, site_id))


@mcp.tool()
def audit_assignments(company_id: str, site_id: str, strategy: str | None = None) -> list[dict[str, Any]]:
    """Re-check the resolution against its invariants. Empty means clean."""
    return _service().audit(_scope(company_id, site_id), strategy)


@mcp.tool()
def compare_strategies(company_id: str, site_id: str) -> dict[str, Any]:
    """Run every strategy on the same inputs and compare them per driver."""
    return _service().compare(_scope(company_id, site_id))


@mcp.tool()
def export_assignments(company_id: str, site_id: str, strategy: str | None = None, xlsx: bool = False) -> dict[str, str]:
    """Write the CSV exports and metrics.json (optionally an XLSX workbook)."""
    service = _service()
    scope = _scope(company_id, site_id)
    target = export_root(service.artifact_root) / scope.company_id / scope.site_id
    return service.export(scope, target, strategy=strategy, xlsx=xlsx)


# -- Saved resolutions --

@mcp.tool()
def save_resolution(company_id: str, site_id: str, strategy: str | None = None) -> dict[str, Any]:
    """Persist the current resolution as an artifact."""
    return _service().save(_scope(company_id, site_id), strategy)


@mcp.tool()
def list_resolutions(company_id: str | None = None, site_id: str | None = None, limit: int = 20) -> list[dict[str, Any]]:
    """List saved resolution manifests, newest first."""
    scope = _scope(company_id, site_id) if company_id and site_id else None
    return _list_resolutions(_service().artifact_root, limit=limit, scope=scope)


@mcp.tool()
def load_resolution(resolution_id: str | None = None) -> dict[str, Any]:
    """Load a saved resolution by ID (or latest if omitted)."""
    return _load_resolution(_service().artifact_root, resolution_id=resolution_id)


# -- Server entrypoints --

async def _run_http() -> None:
    import uvicorn
    from starlette.middleware.base import BaseHTTPMiddleware
    from starlette.responses import JSONResponse, PlainTextResponse
    from starlette.routing import Route

    api_key = os.getenv("MCP_API_KEY")

    class BearerAuth(BaseHTTPMiddleware):
        async def dispatch(self, request, call_next):
            if request.url.path == "/health":
                return await call_next(request)
            auth = request.headers.get("authorization", "")
            if not auth.startswith("Bearer ") or auth[7:] != api_key:
                return JSONResponse({"error": "unauthorized"}, status_code=401)
            return await call_next(request)

    starlette_app = mcp.streamable_http_app()

    if api_key:
        starlette_app.add_middleware(BearerAuth)

    starlette_app.routes.append(
        Route("/health", lambda r: PlainTextResponse("ok"))
    )

    config = uvicorn.Config(
        starlette_app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level="info",
    )
    await uvicorn.Server(config).serve()


def main() -> None:
    global _ENV_FILE

    parser = argparse.ArgumentParser(description="Run jobpicks MCP server")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument(
        "--transport",
        default=None,
        choices=["stdio", "sse", "streamable-http"],
        help="MCP transport (default: streamable-http when PORT is set, else stdio)",
    )
    args = parser.parse_args()
    _ENV_FILE = args.env_file

    load_env(_ENV_FILE or os.getenv("JOBPICKS_ENV_FILE"))
    logging.basicConfig(
        level=runtime_config().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    transport = args.transport
    if transport is None:
        transport = "streamable-http" if os.getenv("PORT") else "stdio"

    if transport == "streamable-http":
        import anyio
        anyio.run(_run_http)
    else:
        mcp.run(transport=transport)


if __name__ == "__main__":
    main()
