"""Shared time helpers used for job ordering and reporting."""

from __future__ import annotations

from datetime import datetime, timezone

UTC = timezone.utc

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Start-time buckets shown on the statistics dashboard.
START_BUCKETS = (
    ("05-10", 5 * 60, 10 * 60),
    ("10-15", 10 * 60, 15 * 60),
    ("15-20", 15 * 60, 20 * 60),
)
OTHER_BUCKET = "other"


def parse_hhmm_to_minutes(value: str | None) -> int | None:
    """Parse HH:MM into minutes after midnight."""
    if not value or ":" not in str(value):
        return None
    try:
        hh, mm = str(value).split(":", 1)
        h = int(hh)
        m = int(mm)
    except (TypeError, ValueError):
        return None
    if h < 0 or h > 23 or m < 0 or m > 59:
        return None
    return h * 60 + m


def start_bucket(start_time: str | None) -> str:
    """Map a job start time to its dashboard bucket."""
    minutes = parse_hhmm_to_minutes(start_time)
    if minutes is None:
        return OTHER_BUCKET
    for label, lo, hi in START_BUCKETS:
        if lo <= minutes < hi:
            return label
    return OTHER_BUCKET


def expand_week_days(pattern: str | None) -> list[int]:
    """Expand a pattern like ``Mon-Fri`` or ``Mon,Wed,Fri`` into weekday indexes.

    Ranges wrap around the week (``Fri-Mon`` covers Fri, Sat, Sun, Mon).
    Unknown tokens are ignored.
    """
    if not pattern:
        return []
    days: list[int] = []
    for part in str(pattern).replace(" ", "").split(","):
        if not part:
            continue
        if "-" in part:
            lo, _, hi = part.partition("-")
            a = _weekday_index(lo)
            b = _weekday_index(hi)
            if a is None or b is None:
                continue
            i = a
            while True:
                if i not in days:
                    days.append(i)
                if i == b:
                    break
                i = (i + 1) % 7
        else:
            idx = _weekday_index(part)
            if idx is not None and idx not in days:
                days.append(idx)
    return days


def _weekday_index(token: str) -> int | None:
    key = token.strip().lower()[:3]
    if key in WEEKDAYS:
        return WEEKDAYS.index(key)
    return None


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def now_utc_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
