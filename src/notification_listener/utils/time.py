"""
Timestamp helpers for the notification listener.

Provides conversions between:
- Python datetime objects (always timezone-aware UTC internally)
- ISO-8601 strings used in the output wire format
- Core Foundation absolute time (seconds since 2001-01-01 00:00:00 UTC),
  which the platform notification store uses for its date columns
- The leading timestamp of compact-style log lines

Example:
    >>> from notification_listener.utils.time import cf_absolute_to_datetime, to_iso
    >>>
    >>> dt = cf_absolute_to_datetime(0.0)
    >>> to_iso(dt)
    '2001-01-01T00:00:00+00:00'
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

# Core Foundation reference date
CF_EPOCH = datetime(2001, 1, 1, tzinfo=UTC)

# "2024-05-01 09:12:33.123456-0700" as printed by `log stream --style compact`
_LOG_STAMP = re.compile(
    r"^(?P<stamp>\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:\.\d{1,6})?)(?P<tz>[+-]\d{2}:?\d{2}|Z)?"
)


def now_utc() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_iso(dt: datetime) -> str:
    """Format a datetime as ISO-8601.

    Naive datetimes are assumed to be UTC.

    Args:
        dt: Datetime to format

    Returns:
        ISO-8601 string with offset
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def cf_absolute_to_datetime(seconds: float) -> datetime:
    """Convert Core Foundation absolute time to a UTC datetime.

    Args:
        seconds: Seconds since 2001-01-01 00:00:00 UTC

    Returns:
        Aware UTC datetime
    """
    return CF_EPOCH + timedelta(seconds=seconds)


def parse_store_date(value: str | None) -> datetime | None:
    """Parse a date column value from the notification store.

    Numeric values are Core Foundation absolute times; anything else is
    tried as ISO-8601. Unparseable values yield None so the caller falls
    back to the wall clock.
    """
    if not value:
        return None
    try:
        return cf_absolute_to_datetime(float(value))
    except (ValueError, OverflowError):
        pass
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def parse_log_timestamp(line: str) -> datetime | None:
    """Extract the leading timestamp of a compact-style log line.

    Lines without a recognizable stamp yield None. A stamp without an
    offset is taken as local time, matching how the log streamer prints it.

    Example:
        >>> parse_log_timestamp("2024-05-01 09:12:33.120000-0700 Df usernoted ...")
        datetime.datetime(2024, 5, 1, 9, 12, 33, 120000, tzinfo=...)
    """
    match = _LOG_STAMP.match(line)
    if not match:
        return None

    stamp = match.group("stamp").replace("T", " ")
    tz = match.group("tz")
    try:
        if tz is None:
            return datetime.fromisoformat(stamp).astimezone()
        if tz == "Z":
            tz = "+00:00"
        elif ":" not in tz:
            tz = f"{tz[:3]}:{tz[3:]}"
        return datetime.fromisoformat(f"{stamp}{tz}")
    except ValueError:
        return None
