"""
Recurrence expansion.

Turns a recurring parent plus a query range into the concrete occurrence
dates inside that range.
"""

import sys
from datetime import datetime, date
from typing import Optional

from .date_utils import occurrence_at, is_same_day, recurrence_step
from .event_model import Event, Recurrence
from .exceptions import InvalidRecurrenceError


# Upper bound on emitted occurrences per parent per query
MAX_INSTANCES = 365


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] RECUR: {msg}", file=sys.stderr)


def validate_recurrence(kind: Recurrence, custom_days: Optional[int] = None) -> None:
    """
    Check a recurrence configuration.

    Raises:
        InvalidRecurrenceError: custom without a positive interval.
    """
    if kind == Recurrence.NONE:
        return
    recurrence_step(kind, custom_days)


def effective_end(parent: Event, range_end: date) -> date:
    if parent.recurrence_end_date is not None and parent.recurrence_end_date < range_end:
        return parent.recurrence_end_date
    return range_end


def expand(parent: Event, range_start: date, range_end: date) -> list[date]:
    """
    Occurrence dates of ``parent`` within [range_start, range_end].

    The result is ascending and never goes past the parent's
    recurrence_end_date. Excluded dates are skipped. At most MAX_INSTANCES
    dates are returned. A parent with an invalid recurrence configuration
    yields what was produced before the problem showed up (at most its
    anchor date), so a bad record can never stall a query. The same goes
    for a series whose next step would fall past ``date.max``.

    The parent is not modified; calling again gives the same result.
    """
    end = effective_end(parent, range_end)
    instances: list[date] = []
    if parent.date > end:
        return instances

    n = 0
    current = parent.date
    while current <= end:
        if current >= range_start:
            excluded = any(is_same_day(d, current) for d in parent.excluded_dates)
            if not excluded:
                instances.append(current)
                if len(instances) >= MAX_INSTANCES:
                    _debug_print(f"{parent.id}: stopped at {MAX_INSTANCES} instances")
                    break

        n += 1
        try:
            following = occurrence_at(parent.date, parent.recurrence, n, parent.custom_interval_days)
        except InvalidRecurrenceError as e:
            _debug_print(f"{parent.id}: {e}")
            break
        except (OverflowError, ValueError) as e:
            # Next step lies past date.max
            _debug_print(f"{parent.id}: stopped at {current}: {e}")
            break
        if following <= current:
            # Non-advancing step, nothing more to produce
            break
        current = following

    return instances
