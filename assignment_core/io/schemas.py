"""Column constants, pipe helpers, and type coercion for CSV I/O."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Input CSV column names
# ---------------------------------------------------------------------------

DRIVERS_COLS = [
    "employee_id",
    "name",
    "seniority_number",
    "vc_status",
    "airport_certified",
    "is_eligible",
]

JOBS_COLS = [
    "job_id",
    "start_time",
    "week_days",
    "is_airport",
]

PREFERENCES_COLS = [
    "driver_id",
    "preferences",
    "submission_time",
]

MANUAL_ASSIGNMENTS_COLS = [
    "driver_id",
    "job_id",
]

# ---------------------------------------------------------------------------
# Output CSV column names (headers match the portal's exports)
# ---------------------------------------------------------------------------

ASSIGNMENTS_COLS = [
    "Driver ID",
    "Driver Name",
    "Seniority Number",
    "VC Status",
    "Job ID",
    "Job Start Time",
    "Week Days",
    "Airport Job",
    "Assignment Type",
]

UNASSIGNED_JOBS_COLS = [
    "Job ID",
    "Start Time",
    "Work Days",
    "Airport Job",
]

DRIVERS_WITHOUT_PICKS_COLS = [
    "Driver ID",
    "Driver Name",
    "Seniority Number",
    "VC Status",
    "Airport Certified",
]

# ---------------------------------------------------------------------------
# Pipe-separated field helpers
# ---------------------------------------------------------------------------

PIPE = "|"


def pipe_join(values: list | tuple | None) -> str:
    """Join a list into a pipe-separated string. Empty/None -> empty string."""
    if not values:
        return ""
    return PIPE.join(str(v) for v in values if v is not None and str(v).strip())


def pipe_split(value: str | None) -> list[str]:
    """Split a pipe-separated string into a list. Empty/None -> empty list."""
    if not value or not str(value).strip():
        return []
    return [v.strip() for v in str(value).split(PIPE) if v.strip()]


# ---------------------------------------------------------------------------
# Type coercion helpers for reading CSV values
# ---------------------------------------------------------------------------


def to_int(value: str | None, default: int = 0) -> int:
    """Coerce a CSV string to int. Empty/None -> default."""
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return default


def to_bool(value: str | None, default: bool = False) -> bool:
    """Coerce a CSV string to bool. TRUE/true/1/Yes -> True; empty -> default."""
    if value is None or str(value).strip() == "":
        return default
    return str(value).strip().upper() in ("TRUE", "1", "YES")


def fmt_bool(value: bool) -> str:
    """Format a bool for CSV input files."""
    return "TRUE" if value else "FALSE"


def fmt_yes_no(value: bool) -> str:
    """Format a bool the way the portal exports show it."""
    return "Yes" if value else "No"
