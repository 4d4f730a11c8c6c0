"""
Time helpers.

All timestamps are stored as UTC. SQLite hands back naive datetimes while
Postgres hands back aware ones, so arithmetic goes through as_utc_naive.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def seconds_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Whole seconds from start to end (floored, never negative); None if either is missing."""
    start, end = as_utc_naive(start), as_utc_naive(end)
    if start is None or end is None:
        return None
    return max(0, int((end - start).total_seconds()))
