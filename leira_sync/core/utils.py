"""Shared time utilities for leira-sync.

Queue entries carry epoch-millisecond timestamps (the format the mobile app
persists), while log output and the ``lastSyncTimestamp`` record use
timezone-aware ISO-8601 strings. Conversions between the two live here.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from leira_sync.core.utils import utc_now
        >>> now = utc_now()
        >>> now.tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def epoch_millis(dt: datetime | None = None) -> int:
    """Convert a datetime to epoch milliseconds.

    Args:
        dt: Datetime to convert. Naive values are assumed to be UTC.
            Defaults to the current time.

    Returns:
        Milliseconds since the Unix epoch.
    """
    if dt is None:
        dt = utc_now()
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def isoformat_utc(dt: datetime | None = None) -> str:
    """Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Args:
        dt: Datetime to format. Defaults to the current time.

    Returns:
        String like ``2026-10-19T12:30:00.000Z``.
    """
    if dt is None:
        dt = utc_now()
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
