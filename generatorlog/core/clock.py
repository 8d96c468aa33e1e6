"""
UTC time helpers.

Timestamps are stored as naive UTC datetimes; anything arriving with a
timezone is converted before it reaches the database.
"""
from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Normalize an aware or naive datetime to naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat_utc(value: datetime) -> str:
    """ISO-8601 text for a UTC instant, marked with a trailing "Z"."""
    value = as_naive_utc(value)
    return value.isoformat() + "Z"
