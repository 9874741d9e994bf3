"""
Timezone utilities for slotcal.

Event dates are plain calendar dates. The only place a timezone matters is
when a date has to become an instant: virtual instance ids are keyed by the
epoch timestamp of local midnight, and bookkeeping timestamps are UTC.
"""

from datetime import datetime, date, time as dt_time
import time as _time
import pytz


# Default timezone - can be overridden by config
_local_timezone_name: str = "UTC"


def set_timezone(timezone_name: str):
    """Set the local timezone for the application."""
    global _local_timezone_name
    _local_timezone_name = timezone_name


def get_local_timezone():
    """
    Get the local timezone as a pytz timezone object.

    Returns:
        pytz timezone object for the configured local timezone.
    """
    try:
        return pytz.timezone(_local_timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback: calculate offset and use fixed offset timezone
        is_dst = _time.localtime().tm_isdst
        if is_dst:
            offset_seconds = -_time.altzone
        else:
            offset_seconds = -_time.timezone
        return pytz.FixedOffset(offset_seconds // 60)


def now_utc() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def local_midnight(d: date) -> datetime:
    """
    Localize midnight of a calendar date.

    Args:
        d: A date (a datetime is truncated to its date).

    Returns:
        A timezone-aware datetime at 00:00 local time.
    """
    if isinstance(d, datetime):
        d = d.date()
    return get_local_timezone().localize(datetime.combine(d, dt_time.min))


def date_to_timestamp_ms(d: date) -> int:
    """Epoch milliseconds of local midnight of ``d``."""
    return int(local_midnight(d).timestamp()) * 1000


def timestamp_ms_to_date(ms: int) -> date:
    """Inverse of date_to_timestamp_ms."""
    return datetime.fromtimestamp(ms / 1000, tz=pytz.UTC).astimezone(get_local_timezone()).date()


def to_local_date(dt: datetime) -> date:
    """
    Calendar date of a datetime in the local timezone.

    Naive datetimes are taken as already local.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(get_local_timezone())
    return dt.date()
