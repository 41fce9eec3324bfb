"""
Time Utilities

bitbank returns every timestamp as milliseconds since the Unix epoch
(ticker.timestamp, candle row[5], depth.timestamp, transaction.executed_at).

The helpers here turn those untyped values into timezone-aware UTC datetimes
and ISO-8601 strings. Conversion never raises: anything that is not a finite
number inside the calendar range becomes None, which callers display as
"unknown time".
"""

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from dateutil import tz as dateutil_tz

from core.schemas import YEARLY_CANDLE_TYPES


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_absolute_time(raw: Any) -> Optional[datetime]:
    """
    Convert a millisecond epoch timestamp to a UTC datetime.

    Args:
        raw: int, float, Decimal or numeric string in milliseconds

    Returns:
        Timezone-aware datetime in UTC, or None if the value is not usable

    Examples:
        >>> to_absolute_time(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> to_absolute_time("1704110400000")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
        >>> to_absolute_time("abc") is None
        True
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float, Decimal)):
        value = raw
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None

    try:
        millis = float(value)
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(millis):
        return None

    try:
        return EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None


def to_iso_time(raw: Any) -> Optional[str]:
    """
    Convert a millisecond epoch timestamp to an ISO-8601 UTC string.

    Example:
        >>> to_iso_time(1704110400000)
        '2024-01-01T12:00:00.000Z'
    """
    dt = to_absolute_time(raw)
    if dt is None:
        return None
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_display_time(ts: Optional[int] = None, tz: str = "Asia/Tokyo") -> Optional[str]:
    """
    Format a millisecond timestamp for human display in the given timezone.

    Args:
        ts: Milliseconds since epoch (defaults to now)
        tz: IANA timezone name

    Returns:
        "2025/01/15 14:30:00 JST" style string, or None if ts or tz is unusable
    """
    dt = to_absolute_time(ts if ts is not None else current_utc_timestamp(milliseconds=True))
    zone = dateutil_tz.gettz(tz)
    if dt is None or zone is None:
        return None
    local = dt.astimezone(zone)
    return f"{local:%Y/%m/%d %H:%M:%S} {local.tzname()}"


def default_candle_date(candle_type: str, now: Optional[datetime] = None) -> str:
    """
    Default date path segment for a candlestick request.

    Yearly-class candle types (4hour and coarser) are addressed by year,
    finer ones by day. Uses the local process clock.

    Examples:
        >>> default_candle_date("1day", datetime(2024, 3, 5))
        '2024'
        >>> default_candle_date("1hour", datetime(2024, 3, 5))
        '20240305'
    """
    now = now or datetime.now()
    if candle_type in YEARLY_CANDLE_TYPES:
        return f"{now.year:04d}"
    return f"{now:%Y%m%d}"


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        return int(dt.timestamp() * 1000)
    return int(dt.timestamp())


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """
    Get current UTC timestamp.

    Examples:
        >>> current_utc_timestamp()
        1704110400

        >>> current_utc_timestamp(milliseconds=True)
        1704110400123
    """
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def current_utc_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return to_iso_time(current_utc_timestamp(milliseconds=True))
