"""
Time accounting primitives.

Every duration in the system is derived from an interval whose end may still
be open; these helpers do that one way everywhere.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def minutes_between(
    start: datetime,
    end: datetime | None = None,
    now: datetime | None = None,
) -> int:
    """Whole minutes elapsed from *start* to *end*, or to *now* if *end* is open.

    Clock skew between devices can put *end* before *start*; that clamps to 0.
    """
    finish = end if end is not None else (now or utcnow())
    delta = ensure_utc(finish) - ensure_utc(start)
    if delta.total_seconds() <= 0:
        return 0
    return int(delta.total_seconds() // 60)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)