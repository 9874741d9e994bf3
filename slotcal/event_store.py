"""
Event Store for slotcal.

Holds the canonical id -> Event mapping, answers range queries by expanding
recurring parents into virtual instances on demand, and applies scoped
edits and deletes ("this occurrence", "this and future", "whole series").

The store is an explicit object: construct it once with a storage backend,
hand it to whoever needs it, and call flush() at exit.
"""

import sys
from dataclasses import dataclass, replace
from datetime import datetime, date
from typing import Optional, Callable, Union

from .date_utils import TIME_SLOTS, as_date, day_before, time_slot_index
from .event_model import (
    Event, Recurrence, Scope, Tag,
    is_simple_event, is_recurring_parent,
    make_virtual_id, make_virtual_instance, parse_virtual_id,
    new_event_id, normalize_patch, apply_patch,
)
from .event_storage import EventStorageBackend, MemoryEventStorage
from .exceptions import InvalidRecurrenceError, InvalidScopeError, NotFoundError
from .recurrence import expand, validate_recurrence
from .timezone_utils import now_utc


def _debug_print(message: str) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] STORE: {message}", file=sys.stderr)


@dataclass
class _Target:
    """A resolved mutation target."""
    record: Event  # Stored record, or a synthesized virtual instance
    parent: Optional[Event]  # None for simple events
    occurrence: Optional[date]  # Occurrence date within the parent's series
    materialized: bool  # True if record is stored

    @property
    def is_exception(self) -> bool:
        return self.materialized and self.parent is not None and self.record is not self.parent


class EventStore:
    """
    In-memory event collection backed by a storage backend.

    Every successful mutation is persisted and reported to the change
    callback. Failed mutations raise and leave the store untouched.
    """

    def __init__(self, storage: Optional[EventStorageBackend] = None, load: bool = True):
        self._storage = storage if storage is not None else MemoryEventStorage()
        self._events: dict[str, Event] = {}
        self._on_change_callback: Optional[Callable[[], None]] = None

        if load:
            self.load()

    def set_on_change_callback(self, callback: Callable[[], None]) -> None:
        self._on_change_callback = callback

    def _notify_change(self) -> None:
        if self._on_change_callback:
            self._on_change_callback()

    # ==================== Persistence ====================

    def load(self) -> int:
        """Replace the in-memory collection with the stored one."""
        events = self._storage.load_events()
        self._events = {e.id: e for e in events}
        _debug_print(f"Loaded {len(self._events)} events")
        return len(self._events)

    def flush(self) -> None:
        """Write the current collection to storage."""
        self._storage.save_events(list(self._events.values()))

    def _commit(self) -> None:
        self.flush()
        self._notify_change()

    # ==================== Lookup ====================

    @property
    def events(self) -> list[Event]:
        """Stored records (simple events, parents, exception records)."""
        return list(self._events.values())

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._events

    def is_materialized(self, event: Event) -> bool:
        """True if ``event`` is a stored record rather than a computed occurrence."""
        return event.id in self._events

    def get_event_by_id(self, event_id: str) -> Optional[Event]:
        """Stored record, or the virtual instance a virtual id stands for."""
        try:
            return self._resolve(event_id).record
        except NotFoundError:
            return None

    def get_parent_event(self, event_id: str) -> Optional[Event]:
        """The series parent of an occurrence; a simple event is its own parent."""
        try:
            target = self._resolve(event_id)
        except NotFoundError:
            return None
        return target.parent if target.parent is not None else target.record

    def _exceptions_of(self, parent_id: str) -> list[Event]:
        return [e for e in self._events.values() if e.parent_id == parent_id]

    def _is_series_date(self, parent: Event, occurrence: date) -> bool:
        """Whether the series produces ``occurrence``, ignoring its exclusions."""
        unexcluded = replace(parent, excluded_dates=[])
        return expand(unexcluded, occurrence, occurrence) == [occurrence]

    def _resolve(self, event_id: str) -> _Target:
        record = self._events.get(event_id)
        if record is not None:
            if is_simple_event(record):
                return _Target(record, None, None, True)
            if is_recurring_parent(record):
                # A parent stands for its first occurrence
                return _Target(record, record, record.date, True)
            parent = self._events.get(record.parent_id)
            if parent is None or not is_recurring_parent(parent):
                _debug_print(f"Exception record {event_id} has no parent, treating as simple")
                return _Target(record, None, None, True)
            return _Target(record, parent, record.occurrence_date, True)

        parsed = parse_virtual_id(event_id)
        if parsed is not None:
            parent_id, occurrence = parsed
            parent = self._events.get(parent_id)
            if (parent is not None and is_recurring_parent(parent)
                    and self._is_series_date(parent, occurrence)):
                return _Target(make_virtual_instance(parent, occurrence), parent, occurrence, False)

        raise NotFoundError(event_id)

    # ==================== Range Query ====================

    def get_events_in_range(self, start: Union[date, datetime], end: Union[date, datetime]) -> list[Event]:
        """
        All events with a date in [start, end], ordered by date and time slot.

        Recurring parents contribute one virtual instance per occurrence,
        except where an exception record for that occurrence is stored.
        Does not modify the store.
        """
        start = as_date(start)
        end = as_date(end)
        if start > end:
            return []

        result: list[Event] = []
        for event in self._events.values():
            if is_recurring_parent(event):
                for occurrence in expand(event, start, end):
                    if make_virtual_id(event.id, occurrence) in self._events:
                        continue
                    result.append(make_virtual_instance(event, occurrence))
            elif start <= event.date <= end:
                # Simple events and exception records
                result.append(event)

        result.sort(key=lambda e: (e.date, time_slot_index(e.time_slot)))
        return result

    # ==================== Create ====================

    def create(
        self,
        title: str,
        date: date,
        time_slot: str = TIME_SLOTS[0],
        tag: Union[Tag, str] = Tag.PRIVATE,
        recurrence: Union[Recurrence, str] = Recurrence.NONE,
        description: Optional[str] = None,
        custom_tag: Optional[str] = None,
        custom_interval_days: Optional[int] = None,
    ) -> Event:
        """
        Create a simple event or a recurring parent.

        Raises:
            InvalidRecurrenceError: custom recurrence without a positive interval.
            ValueError: unknown time slot, tag or recurrence kind.
        """
        recurrence = Recurrence(recurrence)
        validate_recurrence(recurrence, custom_interval_days)
        if time_slot not in TIME_SLOTS:
            raise ValueError(f"Unknown time slot: {time_slot!r}")

        now = now_utc()
        event = Event(
            id=new_event_id(),
            title=title,
            date=as_date(date),
            time_slot=time_slot,
            tag=Tag(tag),
            recurrence=recurrence,
            description=description,
            custom_tag=custom_tag,
            custom_interval_days=custom_interval_days if recurrence == Recurrence.CUSTOM else None,
            created_at=now,
            updated_at=now,
        )
        while event.id in self._events:
            event = replace(event, id=new_event_id())

        self._events[event.id] = event
        _debug_print(f"Created {event.id} ({recurrence.value})")
        self._commit()
        return event

    # ==================== Scoped Edit ====================

    def update_scoped(self, event_id: str, scope: Union[Scope, str], patch: dict) -> Event:
        """
        Edit an event with the given scope.

        Returns the record that now carries the edit: the patched simple event
        or exception record, the new series parent for 'future', or the
        patched parent for 'all'.

        Raises:
            NotFoundError: no such event or occurrence.
            InvalidScopeError: 'future'/'all' on a simple event.
            ValueError: the patch names a field that cannot be changed.
        """
        scope = Scope(scope)
        patch = normalize_patch(patch)
        target = self._resolve(event_id)

        if target.parent is None:
            if scope != Scope.SINGLE:
                raise InvalidScopeError(f"Scope '{scope.value}' needs a recurring event")
            result = apply_patch(target.record, patch)
            self._events[result.id] = result
        elif scope == Scope.SINGLE:
            result = self._edit_occurrence(target, patch)
        elif scope == Scope.FUTURE:
            result = self._split_series(target, patch)
        else:
            result = self._edit_series(target, patch)

        _debug_print(f"Edited {event_id} (scope={scope.value}) -> {result.id}")
        self._commit()
        return result

    def _edit_occurrence(self, target: _Target, patch: dict) -> Event:
        parent = target.parent
        if target.is_exception:
            result = apply_patch(target.record, patch)
        else:
            now = now_utc()
            base = make_virtual_instance(parent, target.occurrence)
            result = replace(apply_patch(base, patch), created_at=now, updated_at=now)

        self._events[result.id] = result
        self._events[parent.id] = self._with_excluded(parent, target.occurrence)
        return result

    def _split_series(self, target: _Target, patch: dict) -> Event:
        parent = target.parent
        split = target.occurrence
        new_start = patch.get("date", split)
        shift = new_start - split

        # Exclusions backed by an exception record belong to the old series;
        # plain deletions move over so they stay deleted
        edited = {e.occurrence_date for e in self._exceptions_of(parent.id)}
        carried = sorted(d + shift for d in parent.excluded_dates if d >= split and d not in edited)

        now = now_utc()
        new_parent = replace(
            apply_patch(parent, patch),
            id=new_event_id(),
            date=new_start,
            excluded_dates=carried,
            recurrence_end_date=(
                parent.recurrence_end_date + shift if parent.recurrence_end_date else None
            ),
            created_at=now,
            updated_at=now,
        )

        if split <= parent.date:
            self._remove_series(parent)
        else:
            self._truncate_series(parent, split)
        self._events[new_parent.id] = new_parent
        return new_parent

    def _edit_series(self, target: _Target, patch: dict) -> Event:
        parent = target.parent
        patch = dict(patch)
        changes = {}
        if "date" in patch:
            # Moving one occurrence moves the whole series by the same amount
            shift = patch.pop("date") - target.occurrence
            if shift:
                changes = {
                    "date": parent.date + shift,
                    "excluded_dates": [d + shift for d in parent.excluded_dates],
                    "recurrence_end_date": (
                        parent.recurrence_end_date + shift if parent.recurrence_end_date else None
                    ),
                }
        result = replace(apply_patch(parent, patch), **changes)
        self._events[parent.id] = result
        return result

    # ==================== Scoped Delete ====================

    def delete_scoped(self, event_id: str, scope: Union[Scope, str]) -> None:
        """
        Delete an event with the given scope.

        Raises:
            NotFoundError: no such event or occurrence.
            InvalidScopeError: 'future'/'all' on a simple event.
        """
        scope = Scope(scope)
        target = self._resolve(event_id)

        if target.parent is None:
            if scope != Scope.SINGLE:
                raise InvalidScopeError(f"Scope '{scope.value}' needs a recurring event")
            del self._events[target.record.id]
        elif scope == Scope.SINGLE:
            if target.is_exception:
                del self._events[target.record.id]
            self._events[target.parent.id] = self._with_excluded(target.parent, target.occurrence)
        elif scope == Scope.FUTURE:
            if target.occurrence <= target.parent.date:
                self._remove_series(target.parent)
            else:
                self._truncate_series(target.parent, target.occurrence)
        else:
            self._remove_series(target.parent)

        _debug_print(f"Deleted {event_id} (scope={scope.value})")
        self._commit()

    # ==================== Series Helpers ====================

    def _with_excluded(self, parent: Event, occurrence: date) -> Event:
        if occurrence in parent.excluded_dates:
            return parent
        return replace(
            parent,
            excluded_dates=sorted(parent.excluded_dates + [occurrence]),
            updated_at=now_utc(),
        )

    def _truncate_series(self, parent: Event, split: date) -> Event:
        """End the series the day before ``split`` and drop state from then on."""
        end = day_before(split)
        if parent.recurrence_end_date is not None and parent.recurrence_end_date < end:
            end = parent.recurrence_end_date

        for exception in self._exceptions_of(parent.id):
            if exception.occurrence_date >= split:
                del self._events[exception.id]

        truncated = replace(
            parent,
            recurrence_end_date=end,
            excluded_dates=[d for d in parent.excluded_dates if d < split],
            updated_at=now_utc(),
        )
        self._events[parent.id] = truncated
        return truncated

    def _remove_series(self, parent: Event) -> None:
        """Delete a parent and every exception record of its series."""
        for exception in self._exceptions_of(parent.id):
            del self._events[exception.id]
        del self._events[parent.id]

    # ==================== Conversions ====================

    def convert_to_recurring(
        self,
        event_id: str,
        recurrence: Union[Recurrence, str],
        custom_interval_days: Optional[int] = None,
        patch: Optional[dict] = None,
    ) -> Event:
        """
        Turn a simple event into a recurring parent.

        Raises:
            NotFoundError, InvalidScopeError (not a simple event),
            InvalidRecurrenceError (kind 'none' or bad interval).
        """
        recurrence = Recurrence(recurrence)
        if recurrence == Recurrence.NONE:
            raise InvalidRecurrenceError("Cannot convert to a non-repeating event")
        validate_recurrence(recurrence, custom_interval_days)
        patch = normalize_patch(patch or {})

        target = self._resolve(event_id)
        if target.parent is not None or not target.materialized:
            raise InvalidScopeError("Only simple events can be converted to a series")

        result = replace(
            apply_patch(target.record, patch),
            recurrence=recurrence,
            custom_interval_days=custom_interval_days if recurrence == Recurrence.CUSTOM else None,
            parent_id=None,
            instance_date=None,
            excluded_dates=[],
            recurrence_end_date=None,
        )
        self._events[result.id] = result
        self._commit()
        return result

    def convert_to_simple(self, event_id: str) -> Event:
        """
        Detach an event from its series.

        A parent becomes a simple event on its own date (its exception records
        are dropped). An occurrence becomes a new simple event and its date is
        excluded from the series.
        """
        target = self._resolve(event_id)
        if target.parent is None:
            raise InvalidScopeError("Event is already simple")

        now = now_utc()
        if target.record is target.parent:
            for exception in self._exceptions_of(target.parent.id):
                del self._events[exception.id]
            result = replace(
                target.parent,
                recurrence=Recurrence.NONE,
                custom_interval_days=None,
                excluded_dates=[],
                recurrence_end_date=None,
                updated_at=now,
            )
        else:
            if target.is_exception:
                del self._events[target.record.id]
            result = replace(
                target.record,
                id=new_event_id(),
                recurrence=Recurrence.NONE,
                custom_interval_days=None,
                parent_id=None,
                instance_date=None,
                created_at=now,
                updated_at=now,
            )
            self._events[target.parent.id] = self._with_excluded(target.parent, target.occurrence)

        self._events[result.id] = result
        self._commit()
        return result

    def change_recurrence(
        self,
        event_id: str,
        recurrence: Union[Recurrence, str],
        custom_interval_days: Optional[int] = None,
    ) -> Event:
        """Change how a series repeats. Use convert_to_simple to stop repeating."""
        recurrence = Recurrence(recurrence)
        if recurrence == Recurrence.NONE:
            raise InvalidRecurrenceError("Cannot change recurrence to none")
        validate_recurrence(recurrence, custom_interval_days)

        target = self._resolve(event_id)
        if target.parent is None:
            raise InvalidScopeError("Simple events do not have a recurrence")

        result = replace(
            target.parent,
            recurrence=recurrence,
            custom_interval_days=custom_interval_days if recurrence == Recurrence.CUSTOM else None,
            updated_at=now_utc(),
        )
        self._events[result.id] = result
        self._commit()
        return result
