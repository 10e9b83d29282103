"""Render a resolution to a multi-sheet XLSX workbook."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from assignment_core.models import Resolution, Snapshot

from .schemas import ASSIGNMENTS_COLS, DRIVERS_WITHOUT_PICKS_COLS, UNASSIGNED_JOBS_COLS
from .writer import build_metrics, export_assignment_rows, export_drivers_without_picks, export_unassigned_jobs


def _get_openpyxl():
    try:
        from openpyxl import Workbook
        from openpyxl.styles import Font, PatternFill
        return Workbook, Font, PatternFill
    except ImportError as exc:
        raise ImportError("openpyxl is required for XLSX export: pip install openpyxl") from exc


def _style_headers(worksheets):
    """Apply bold + blue fill to header row of each worksheet."""
    _, Font, PatternFill = _get_openpyxl()
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    for ws in worksheets:
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill


def _summary_fields(metrics: dict[str, Any]) -> list[tuple[str, Any]]:
    summary = metrics.get("summary", {})
    stats = metrics.get("statistics", {})
    fields: list[tuple[str, Any]] = [
        ("company_id", metrics.get("company_id", "")),
        ("site_id", metrics.get("site_id", "")),
        ("generated_at", metrics.get("generated_at", "")),
        ("fingerprint", metrics.get("fingerprint", "")),
        ("strategy", summary.get("strategy", "")),
        ("auto_assign_enabled", summary.get("auto_assign_enabled", True)),
        ("status", summary.get("status", "")),
        ("total_assignments", summary.get("total_assignments", 0)),
        ("first_choice_rate", summary.get("first_choice_rate", 0)),
        ("any_pick_rate", summary.get("any_pick_rate", 0)),
        ("satisfaction_rate", summary.get("satisfaction_rate", 0)),
        ("open_jobs", len(summary.get("unresolved", {}).get("open_job_ids", []))),
        ("unassigned_drivers", len(summary.get("unresolved", {}).get("unassigned_driver_ids", []))),
        ("skipped_manual", len(summary.get("skipped_manual", []))),
        ("submission_rate", stats.get("submission_rate", 0)),
    ]
    for assignment_type, n in summary.get("by_type", {}).items():
        fields.append((f"type_{assignment_type}", n))
    return fields


def render_xlsx(resolution: Resolution, snapshot: Snapshot, path: Path) -> Path:
    """Render a resolution to a multi-sheet XLSX workbook.

    Sheets: Assignments, Unassigned Jobs, Drivers Without Picks, Summary.
    Returns the path to the written file.
    """
    Workbook, _, _ = _get_openpyxl()

    wb = Workbook()
    all_sheets = []

    # --- Assignments sheet ---
    ws_assign = wb.active
    ws_assign.title = "Assignments"
    ws_assign.append(ASSIGNMENTS_COLS)
    for row in export_assignment_rows(resolution, snapshot):
        ws_assign.append([row.get(c, "") for c in ASSIGNMENTS_COLS])
    all_sheets.append(ws_assign)

    # --- Unassigned Jobs sheet ---
    ws_open = wb.create_sheet("Unassigned Jobs")
    ws_open.append(UNASSIGNED_JOBS_COLS)
    for row in export_unassigned_jobs(resolution, snapshot):
        ws_open.append([row.get(c, "") for c in UNASSIGNED_JOBS_COLS])
    all_sheets.append(ws_open)

    # --- Drivers Without Picks sheet ---
    ws_nopicks = wb.create_sheet("Drivers Without Picks")
    ws_nopicks.append(DRIVERS_WITHOUT_PICKS_COLS)
    for row in export_drivers_without_picks(snapshot):
        ws_nopicks.append([row.get(c, "") for c in DRIVERS_WITHOUT_PICKS_COLS])
    all_sheets.append(ws_nopicks)

    # --- Summary sheet ---
    ws_summary = wb.create_sheet("Summary")
    ws_summary.append(["Field", "Value"])
    for field_name, value in _summary_fields(build_metrics(resolution, snapshot)):
        ws_summary.append([field_name, value])
    all_sheets.append(ws_summary)

    _style_headers(all_sheets)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(path))
    return path
