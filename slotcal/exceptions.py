"""
Error types raised by the slotcal core.

All of them are recoverable: a failed mutation leaves the store unchanged and
the caller decides what to tell the user.
"""


class CalendarError(Exception):
    """Base class for slotcal errors."""


class InvalidRecurrenceError(CalendarError):
    """Malformed recurrence configuration (e.g. custom without an interval)."""


class InvalidScopeError(CalendarError):
    """A future/all scope was applied to a non-recurring event."""


class NotFoundError(CalendarError):
    """The mutation target is not in the store."""

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class MalformedStoreError(CalendarError):
    """The persisted document could not be decoded."""
