"""Preference de-duplication and staleness cleaning.

Drivers may submit their picks several times; only the latest submission per
driver counts. Picks that point at jobs (or drivers) removed since the
submission are dropped silently, keeping the remaining order.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime

from .models import Driver, PreferenceSubmission
from .time_utils import UTC, parse_timestamp

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _submitted_at(sub: PreferenceSubmission) -> datetime:
    return parse_timestamp(sub.submission_time) or _EPOCH


def unique_preferences(submissions: Iterable[PreferenceSubmission]) -> dict[str, PreferenceSubmission]:
    """Keep the latest submission per driver.

    Equal timestamps are resolved by input order: the one seen last wins.
    Unparsable timestamps sort before every real one.
    """
    latest: dict[str, PreferenceSubmission] = {}
    for sub in submissions:
        current = latest.get(sub.driver_id)
        if current is None or _submitted_at(sub) >= _submitted_at(current):
            latest[sub.driver_id] = sub
    return latest


def clean_preferences(
    unique_prefs: Mapping[str, PreferenceSubmission],
    valid_job_ids: Collection[str],
    *,
    valid_driver_ids: Collection[str] | None = None,
) -> dict[str, PreferenceSubmission]:
    """Drop picks for jobs not in ``valid_job_ids``; order is preserved.

    When ``valid_driver_ids`` is given, submissions of unknown drivers are
    dropped as well. Cleaning an already clean mapping returns an equal one.
    """
    valid_jobs = set(valid_job_ids)
    valid_drivers = set(valid_driver_ids) if valid_driver_ids is not None else None

    cleaned: dict[str, PreferenceSubmission] = {}
    for driver_id, sub in unique_prefs.items():
        if valid_drivers is not None and driver_id not in valid_drivers:
            continue
        kept = tuple(job_id for job_id in sub.ordered_job_ids if job_id in valid_jobs)
        cleaned[driver_id] = sub if kept == sub.ordered_job_ids else replace(sub, ordered_job_ids=kept)
    return cleaned


def preference_lists(
    prefs: Mapping[str, PreferenceSubmission | Sequence[str]],
) -> dict[str, tuple[str, ...]]:
    """Normalise a preference mapping to ``driver_id -> ordered job ids``."""
    out: dict[str, tuple[str, ...]] = {}
    for driver_id, value in prefs.items():
        if isinstance(value, PreferenceSubmission):
            out[str(driver_id)] = value.ordered_job_ids
        else:
            out[str(driver_id)] = tuple(str(v) for v in value)
    return out


def preference_rank(prefs: Mapping[str, Sequence[str]], driver_id: str, job_id: str) -> int | None:
    """Zero-based position of ``job_id`` in the driver's list, or None."""
    ordered = prefs.get(driver_id)
    if not ordered:
        return None
    try:
        return list(ordered).index(job_id)
    except ValueError:
        return None


def drivers_without_picks(
    drivers: Iterable[Driver],
    prefs: Mapping[str, object],
) -> list[Driver]:
    """Eligible drivers that never submitted, most senior first."""
    missing = [d for d in drivers if d.is_eligible and d.employee_id not in prefs]
    missing.sort(key=lambda d: (d.seniority_number, d.employee_id))
    return missing


def find_duplicate_picks(ordered_job_ids: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    dupes: list[str] = []
    for job_id in ordered_job_ids:
        if job_id in seen and job_id not in dupes:
            dupes.append(job_id)
        seen.add(job_id)
    return dupes
