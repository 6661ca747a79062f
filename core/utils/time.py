"""
Time Utilities

Providers report timestamps in different formats:
- Li.Fi analytics: seconds since epoch (e.g. 1704110400)
- Some dashboards: milliseconds since epoch (e.g. 1704110400000)
- We need: timezone-aware datetime objects in UTC

The utilities in this module normalize all timestamp formats into UTC
datetimes and translate volume windows into epoch ranges for providers
that take explicit time bounds.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union


WINDOW_DURATIONS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12: assumed to be milliseconds
        - Otherwise: assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Seconds are ~1.7e9 today, milliseconds ~1.7e12
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Naive datetimes are treated as UTC. Fractional seconds are truncated.

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def current_utc_datetime() -> datetime:
    """Get current time as a timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def window_start(window: str, now: Optional[datetime] = None) -> datetime:
    """
    Start of a bounded volume window ending at `now`.

    Args:
        window: One of "24h", "7d", "30d"
        now: Window end (defaults to the current UTC time)

    Returns:
        datetime: now - window duration

    Raises:
        ValueError: For "cumulative" or unknown windows, which have no start

    Example:
        >>> window_start("24h", datetime(2024, 1, 2, tzinfo=timezone.utc))
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if window not in WINDOW_DURATIONS:
        raise ValueError(f"Window has no bounded start: {window!r}")
    now = now or current_utc_datetime()
    return now - WINDOW_DURATIONS[window]
