"""
Staleness selection for availability checks

The check queue is never stored. Each tick it is derived from a snapshot of
the catalog: titles never checked come first, then the oldest ``last_checked``
values, ties broken by id.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they're stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def staleness_cutoff(staleness_days: int, now: Optional[datetime] = None) -> datetime:
    """Titles last checked before this moment are stale"""
    if now is None:
        now = datetime.now(timezone.utc)
    return _as_utc(now) - timedelta(days=staleness_days)


def is_stale(title, cutoff: datetime) -> bool:
    if title.last_checked is None:
        return True
    return _as_utc(title.last_checked) < cutoff


def staleness_key(title):
    """Sort key: never-checked first, then oldest check, then id"""
    if title.last_checked is None:
        return (0, datetime.min.replace(tzinfo=timezone.utc), title.id)
    return (1, _as_utc(title.last_checked), title.id)


def select_stale(catalog: Iterable, limit: int, staleness_days: int, now: Optional[datetime] = None) -> List:
    """
    Pick the titles due for an availability check.

    Args:
        catalog: Snapshot of titles (anything with id and last_checked)
        limit: Maximum number of titles to return
        staleness_days: Titles checked more recently than this are not due
        now: Reference time (defaults to current UTC time)

    Returns:
        Up to ``limit`` titles ordered by staleness, most overdue first
    """
    if limit <= 0:
        return []

    cutoff = staleness_cutoff(staleness_days, now)
    due = [title for title in catalog if is_stale(title, cutoff)]
    due.sort(key=staleness_key)
    return due[:limit]


def count_never_checked(catalog: Iterable) -> int:
    return sum(1 for title in catalog if title.last_checked is None)
