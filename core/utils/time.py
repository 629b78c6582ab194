"""
Time Utilities

Providers report timestamps in different formats:
- Binance / CoinGecko: milliseconds since epoch (e.g., 1704110400000)
- CoinDesk: calendar dates (e.g., "2024-01-01")
- Our HistoryPoint: whole seconds since epoch

The helpers below normalize all of them to integer seconds, and produce the
ISO-8601 strings used in `updatedAt` / `lastUpdate`.
"""

from datetime import datetime, timezone
from typing import Union


def to_epoch_seconds(timestamp: Union[int, float]) -> int:
    """
    Convert a timestamp in seconds or milliseconds to whole seconds.

    Detection Logic:
        - If timestamp > 1e12: assumed to be milliseconds
        - Otherwise: assumed to be seconds

    Raises:
        ValueError: If timestamp is negative

    Examples:
        >>> to_epoch_seconds(1704110400000)
        1704110400
        >>> to_epoch_seconds(1704110400.9)
        1704110400
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # ~1.7e9 seconds vs ~1.7e12 milliseconds
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    return int(timestamp)


def date_to_epoch_seconds(value: str) -> int:
    """
    Convert a "YYYY-MM-DD" date to seconds at UTC midnight.

    Example:
        >>> date_to_epoch_seconds("2024-01-01")
        1704067200
    """
    dt = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def current_utc_datetime() -> datetime:
    """Current time as timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Current UTC time as an ISO-8601 string with millisecond precision.

    Example:
        >>> utc_now_iso()
        '2024-01-01T12:00:00.000Z'
    """
    return current_utc_datetime().isoformat(timespec="milliseconds").replace("+00:00", "Z")
