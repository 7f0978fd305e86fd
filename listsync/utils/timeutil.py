"""
Time helpers.

All timestamps stored by listsync are naive UTC datetimes so that SQLite's
TIMESTAMP converters round-trip them unchanged.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are returned as-is."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_epoch_millis(value: int | float | None) -> datetime | None:
    """Convert a millisecond epoch timestamp to a naive UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp (``Z`` suffix allowed) into naive UTC.

    Raises:
        ValueError: If the string is not a valid ISO timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
