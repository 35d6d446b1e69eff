"""Datetime conversion utilities."""

from datetime import UTC, datetime, timedelta

_TICK = timedelta(microseconds=1)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo), or None."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def next_timestamp(previous: datetime | None) -> datetime:
    """Return ``utc_now()``, nudged forward so it is strictly after *previous*."""
    now = utc_now()
    previous = ensure_utc(previous)
    if previous is not None and now <= previous:
        return previous + _TICK
    return now


def datetime_to_iso(value: datetime | None) -> str | None:
    """Convert a datetime to an ISO-8601 string, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
