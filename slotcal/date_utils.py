"""
Calendar arithmetic helpers.

Pure functions over ``datetime.date``: day equality, week/month grids,
time slot buckets and recurrence stepping.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidRecurrenceError


MONTH_NAMES_SHORT = [
    'Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
    'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec'
]

# Two-hour buckets, in display order (the day starts at 08:00)
TIME_SLOTS = [
    '08:00-10:00', '10:00-12:00', '12:00-14:00', '14:00-16:00',
    '16:00-18:00', '18:00-20:00', '20:00-22:00', '22:00-00:00',
    '00:00-02:00', '02:00-04:00', '04:00-06:00', '06:00-08:00'
]

# Months advanced per step for the month-based recurrence kinds
_MONTH_STEPS = {
    'monthly': 1,
    'quarterly': 3,
    'yearly': 12,
}

DateLike = Union[date, datetime]


def as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_same_day(a: DateLike, b: DateLike) -> bool:
    """Calendar-day equality, ignoring any time of day."""
    return as_date(a) == as_date(b)


def day_before(d: date) -> date:
    return as_date(d) - timedelta(days=1)


def time_slot_bucket(index: int) -> str:
    """Map a 0-11 index to its slot label. Out-of-range indices give slot 0."""
    if index < 0 or index >= len(TIME_SLOTS):
        return TIME_SLOTS[0]
    return TIME_SLOTS[index]


def time_slot_index(label: str) -> int:
    """Position of a slot label in TIME_SLOTS; unknown labels sort first."""
    try:
        return TIME_SLOTS.index(label)
    except ValueError:
        return 0


def time_slot_hours(label: str) -> tuple[int, int]:
    """Start and end hour of a slot label, e.g. (22, 0) for '22:00-00:00'."""
    start, end = label.split('-')
    return int(start.split(':')[0]), int(end.split(':')[0])


def recurrence_step(kind, custom_days: Optional[int]) -> Union[timedelta, relativedelta]:
    # Accept Recurrence enum members as well as their string values
    kind = getattr(kind, 'value', kind)
    if kind == 'weekly':
        return timedelta(days=7)
    if kind in _MONTH_STEPS:
        return relativedelta(months=_MONTH_STEPS[kind])
    if kind == 'custom':
        if not custom_days or custom_days <= 0:
            raise InvalidRecurrenceError(
                f"Custom recurrence needs a positive interval, got {custom_days!r}"
            )
        return timedelta(days=custom_days)
    raise InvalidRecurrenceError(f"Not a repeating recurrence kind: {kind!r}")


def next_occurrence(d: date, kind: str, custom_days: Optional[int] = None) -> date:
    """
    Next candidate date after ``d`` for a recurrence kind.

    Month-based kinds clamp to the last valid day of the target month
    (Jan 31 monthly -> Feb 28/29).

    Raises:
        InvalidRecurrenceError: for 'custom' without a positive interval,
            or for a kind that does not repeat.
    """
    return as_date(d) + recurrence_step(kind, custom_days)


def occurrence_at(anchor: date, kind: str, n: int, custom_days: Optional[int] = None) -> date:
    """
    The n-th occurrence of a series, counted from its anchor date (n=0).

    Stepping from the anchor rather than from the previous occurrence keeps
    month-end series on the anchor day: Jan 31, Feb 29, Mar 31, Apr 30.
    """
    step = recurrence_step(kind, custom_days)
    return as_date(anchor) + step * n


def get_week_start(d: date) -> date:
    """Sunday on or before ``d``."""
    d = as_date(d)
    return d - timedelta(days=(d.weekday() + 1) % 7)


def get_week_days(start: date) -> list[date]:
    start = as_date(start)
    return [start + timedelta(days=i) for i in range(7)]


def get_month_days(year: int, month: int) -> list[date]:
    """
    Six-week grid (42 days) for a month view, starting on the Sunday on or
    before the first of the month.
    """
    first = get_week_start(date(year, month, 1))
    return [first + timedelta(days=i) for i in range(42)]


def format_week_range(week_days: list[date]) -> str:
    if len(week_days) < 7:
        return ''

    start = week_days[0]
    end = week_days[6]
    start_month = MONTH_NAMES_SHORT[start.month - 1]
    end_month = MONTH_NAMES_SHORT[end.month - 1]

    if start.month == end.month and start.year == end.year:
        return f"{start.day}-{end.day}, {start_month}, {start.year}"
    if start.year == end.year:
        return f"{start.day}-{end.day}, {start_month}-{end_month}, {start.year}"
    return f"{start.day}-{end.day}, {start_month}-{end_month}, {start.year}-{end.year}"
