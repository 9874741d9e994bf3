"""
slotcal Core Module

This module provides the recurring-event engine of the calendar:
- Configuration parsing (config.py)
- Calendar arithmetic and time slots (date_utils.py, timezone_utils.py)
- Event records and their variants (event_model.py)
- Recurrence expansion (recurrence.py)
- Event store with range queries and scoped edits (event_store.py)
- Persistent JSON storage (event_storage.py)
- iCalendar export (ics_export.py)
"""

from .config import Config
from .event_model import (
    Event, Recurrence, Tag, Scope,
    is_simple_event, is_recurring_parent, is_virtual_instance,
)
from .event_store import EventStore
from .event_storage import JsonEventStorage, MemoryEventStorage, create_storage_backend
from .exceptions import (
    CalendarError, InvalidRecurrenceError, InvalidScopeError,
    NotFoundError, MalformedStoreError,
)

__all__ = [
    'Config',
    'Event',
    'Recurrence',
    'Tag',
    'Scope',
    'is_simple_event',
    'is_recurring_parent',
    'is_virtual_instance',
    'EventStore',
    'JsonEventStorage',
    'MemoryEventStorage',
    'create_storage_backend',
    'CalendarError',
    'InvalidRecurrenceError',
    'InvalidScopeError',
    'NotFoundError',
    'MalformedStoreError',
]
