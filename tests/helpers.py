from datetime import date

from slotcal.event_model import Event, Recurrence


def make_parent(anchor: date, recurrence=Recurrence.WEEKLY, **fields) -> Event:
    """Unsaved recurring parent for engine-level tests."""
    return Event(id="parent", title="Series", date=anchor, recurrence=recurrence, **fields)


def dates_of(events) -> list[date]:
    return [e.date for e in events]
