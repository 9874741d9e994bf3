"""
iCalendar export of an event store.

Simple events become plain VEVENTs. A recurring parent becomes a VEVENT with
an RRULE, its deletions become EXDATEs, and each exception record becomes a
VEVENT sharing the parent's UID with a RECURRENCE-ID. Times are floating
local times taken from the time slot.
"""

import sys
from datetime import datetime, date, time as dt_time, timedelta
from typing import Optional

from icalendar import Calendar as ICalCalendar, Event as ICalEvent

from .date_utils import time_slot_hours
from .event_model import Event, Recurrence, Tag, is_simple_event, is_recurring_parent
from .event_store import EventStore
from .exceptions import InvalidRecurrenceError
from .recurrence import validate_recurrence
from .timezone_utils import now_utc


PRODID = '-//slotcal//slotcal//EN'

_RRULE_PARTS = {
    Recurrence.WEEKLY: {'freq': 'weekly'},
    Recurrence.MONTHLY: {'freq': 'monthly'},
    Recurrence.QUARTERLY: {'freq': 'monthly', 'interval': 3},
    Recurrence.YEARLY: {'freq': 'yearly'},
}


def _debug_print(msg: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] ICS: {msg}", file=sys.stderr)


def slot_start(d: date, time_slot: str) -> datetime:
    start_hour, _ = time_slot_hours(time_slot)
    return datetime.combine(d, dt_time(hour=start_hour))


def slot_end(d: date, time_slot: str) -> datetime:
    start_hour, end_hour = time_slot_hours(time_slot)
    end = datetime.combine(d, dt_time(hour=end_hour))
    if end_hour <= start_hour:
        # '22:00-00:00' ends at midnight of the next day
        end += timedelta(days=1)
    return end


def build_rrule(parent: Event) -> Optional[dict]:
    """RRULE parts for a parent, or None if its configuration is invalid."""
    try:
        validate_recurrence(parent.recurrence, parent.custom_interval_days)
    except InvalidRecurrenceError as e:
        _debug_print(f"{parent.id}: exporting without RRULE: {e}")
        return None

    if parent.recurrence == Recurrence.CUSTOM:
        rule = {'freq': 'daily', 'interval': parent.custom_interval_days}
    else:
        rule = dict(_RRULE_PARTS[parent.recurrence])
        if parent.recurrence != Recurrence.WEEKLY and parent.date.day > 28:
            # Months without the anchor day fall back to their last day
            rule['bymonthday'] = list(range(28, parent.date.day + 1))
            rule['bysetpos'] = -1
            if parent.recurrence == Recurrence.YEARLY:
                rule['bymonth'] = parent.date.month

    if parent.recurrence_end_date is not None:
        rule['until'] = datetime.combine(parent.recurrence_end_date, dt_time(23, 59, 59))
    return rule


def _base_component(event: Event, uid: str) -> ICalEvent:
    component = ICalEvent()
    component.add('uid', uid)
    component.add('dtstamp', event.updated_at or now_utc())
    component.add('summary', event.title)
    component.add('dtstart', slot_start(event.date, event.time_slot))
    component.add('dtend', slot_end(event.date, event.time_slot))
    if event.description:
        component.add('description', event.description)
    category = event.custom_tag if event.tag == Tag.CUSTOM and event.custom_tag else event.tag.value
    component.add('categories', [category])
    return component


def build_calendar(store: EventStore) -> ICalCalendar:
    """Build an iCalendar document from every record in the store."""
    vcal = ICalCalendar()
    vcal.add('prodid', PRODID)
    vcal.add('version', '2.0')

    records = store.events
    parents = {e.id: e for e in records if is_recurring_parent(e)}

    for event in records:
        if is_simple_event(event):
            vcal.add_component(_base_component(event, event.id))

        elif is_recurring_parent(event):
            component = _base_component(event, event.id)
            rule = build_rrule(event)
            if rule is not None:
                component.add('rrule', rule)
                edited = {e.occurrence_date for e in records if e.parent_id == event.id}
                deleted = [d for d in event.excluded_dates if d not in edited]
                if deleted:
                    component.add('exdate', [slot_start(d, event.time_slot) for d in deleted])
            vcal.add_component(component)

        else:
            parent = parents.get(event.parent_id)
            if parent is None:
                _debug_print(f"Skipping {event.id}: parent {event.parent_id} not found")
                continue
            component = _base_component(event, parent.id)
            component.add('recurrence-id', slot_start(event.occurrence_date, parent.time_slot))
            vcal.add_component(component)

    return vcal


def export_ics(store: EventStore) -> str:
    """Serialize the store as iCalendar text."""
    return build_calendar(store).to_ical().decode('utf-8')
