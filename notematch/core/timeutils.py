from __future__ import annotations

from datetime import datetime, timezone


def as_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime; naive values are read as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_hour(dt: datetime) -> int:
    """Hour of day (0-23) of ``dt`` in UTC."""
    return as_utc(dt).hour


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (as_utc(end) - as_utc(start)).total_seconds() / 60.0


__all__ = ["as_utc", "utc_hour", "minutes_between"]
