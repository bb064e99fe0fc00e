"""
Time helpers.

All timestamps are stored as naive UTC datetimes; SQLite drops tzinfo on
round-trip, so aware values would not compare against what comes back.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Aware datetimes (e.g. an ISO string ending in Z) become naive UTC; naive ones are taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
