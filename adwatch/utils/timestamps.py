"""UTC timestamp helpers and the storage string format."""

from datetime import datetime, timezone
from typing import Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return ``dt`` as an aware UTC datetime.

    Naive datetimes are treated as UTC; aware ones are converted.

    Example:
        >>> ensure_utc(datetime(2025, 11, 4, 12, 0)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as the ISO 8601 UTC string stored in the database."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime(STORAGE_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp back into an aware UTC datetime.

    Accepts values with or without microseconds and with or without the
    trailing ``Z``.
    """
    if not value:
        return None

    value = value.rstrip("Z")
    try:
        dt = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(value, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)
