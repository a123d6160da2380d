"""Normalisation of timestamp values at the store boundary.

Stored timestamps arrive as ISO strings, epoch numbers (seconds or
milliseconds), ``Decimal`` values from DynamoDB, naive or aware datetimes,
or Firestore-style ``{"seconds": ..., "nanoseconds": ...}`` maps. Everything
inside the core works with an aware UTC ``datetime``; this module is the only
place that knows about the other shapes.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

Instant = datetime

# Epoch values above this are treated as milliseconds
_MILLIS_THRESHOLD = 10_000_000_000


def utcnow() -> Instant:
    return datetime.now(timezone.utc)


def _from_epoch(value: float) -> Instant:
    if abs(value) > _MILLIS_THRESHOLD:
        value = value / 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc)


def to_instant(value: Any) -> Optional[Instant]:
    """Convert any stored timestamp representation to an aware UTC datetime.

    Args:
        value: Raw value read from a store or provider

    Returns:
        Aware UTC datetime, or None when the value is empty or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float, Decimal)):
        return _from_epoch(float(value))
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=timezone.utc)
    if isinstance(value, str):
        raw = value.strip()
        # Numeric strings are epochs; fromisoformat would read some as compact dates
        try:
            return _from_epoch(float(raw))
        except (ValueError, OverflowError):
            pass
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return to_instant(datetime.fromisoformat(raw))
        except ValueError:
            return None
    return None


def to_wire(value: Optional[Instant]) -> Optional[str]:
    """Serialise an instant for storage as a sortable ISO-8601 UTC string."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def to_millis(value: Instant) -> int:
    return int(value.timestamp() * 1000)
