"""Input/output layer for offline runs.

Public API:
    load_input(directory)                  -- read CSV input dir -> Snapshot
    write_output(resolution, snapshot, d)  -- write CSV exports + metrics.json
    render_xlsx(resolution, snapshot, p)   -- generate multi-sheet workbook
"""

from .reader import load_input
from .writer import write_output

__all__ = [
    "load_input",
    "render_xlsx",
    "write_output",
]


# Lazy import for the optional heavy dependency (openpyxl).
def render_xlsx(*args, **kwargs):
    from .xlsx import render_xlsx as _fn
    return _fn(*args, **kwargs)
