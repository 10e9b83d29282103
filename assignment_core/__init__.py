"""Deterministic assignment of drivers to jobs for one site at a time."""

from .comparison import compare_resolutions
from .constraints import validate_resolution
from .mechanisms import STRATEGIES, resolve_snapshot, run_strategy
from .models import (
    Assignment,
    Driver,
    Job,
    ManualAssignment,
    PreferenceSubmission,
    Resolution,
    SiteScope,
    SkippedManual,
    Snapshot,
)
from .preferences import clean_preferences, unique_preferences
from .reporting import assignment_rows, classify_assignment, site_statistics, summarize_resolution
from .resolver import resolve, resolve_seniority

# io module -- lazy re-exports (avoids importing openpyxl at import time)
from .io import load_input, write_output

__all__ = [
    "STRATEGIES",
    "Assignment",
    "Driver",
    "Job",
    "ManualAssignment",
    "PreferenceSubmission",
    "Resolution",
    "SiteScope",
    "SkippedManual",
    "Snapshot",
    "assignment_rows",
    "classify_assignment",
    "clean_preferences",
    "compare_resolutions",
    "load_input",
    "resolve",
    "resolve_seniority",
    "resolve_snapshot",
    "run_strategy",
    "site_statistics",
    "summarize_resolution",
    "unique_preferences",
    "validate_resolution",
    "write_output",
]
