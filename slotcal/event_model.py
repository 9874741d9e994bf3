"""
Event records and their derived variants.

A single record type covers every kind of event. Which kind a record is
(simple, recurring parent, virtual instance) is computed from its fields,
never stored:

- simple event: no recurrence and no parent
- recurring parent: a recurrence kind and no parent
- virtual instance: a parent and an id of the form ``<parent_id>_<suffix>``

Exception records (individually edited occurrences) reuse the virtual id of
the occurrence they replace, so they classify as virtual instances too.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, date
from enum import Enum
from typing import Optional, Any

import pytz
from dateutil.parser import isoparse

from .date_utils import TIME_SLOTS
from .timezone_utils import (
    date_to_timestamp_ms, timestamp_ms_to_date, to_local_date, now_utc
)


VIRTUAL_ID_SEPARATOR = "_"


class Recurrence(Enum):
    """How a series repeats."""
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"  # Every custom_interval_days days


class Tag(Enum):
    """Event category. Only used for colour and ordering in the UI."""
    PRIVATE = "private"
    WORK = "work"
    BALANCE = "balance"
    CUSTOM = "custom"


class Scope(Enum):
    """Blast radius of an edit or delete against a series."""
    SINGLE = "single"
    FUTURE = "future"
    ALL = "all"


# Fields a caller may change through a patch
PATCHABLE_FIELDS = frozenset({
    "title", "description", "date", "time_slot", "tag", "custom_tag",
})


@dataclass
class Event:
    """
    Canonical event record.

    Series-only fields (excluded_dates, recurrence_end_date) are meaningful on
    recurring parents only; parent_id and instance_date only on occurrences.
    """
    id: str
    title: str
    date: date
    time_slot: str = TIME_SLOTS[0]
    tag: Tag = Tag.PRIVATE
    recurrence: Recurrence = Recurrence.NONE
    description: Optional[str] = None
    custom_tag: Optional[str] = None
    custom_interval_days: Optional[int] = None

    # Occurrence bookkeeping
    parent_id: Optional[str] = None
    instance_date: Optional[date] = None  # The occurrence this record stands for

    # Series bookkeeping
    excluded_dates: list[date] = field(default_factory=list)
    recurrence_end_date: Optional[date] = None  # Inclusive

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def occurrence_date(self) -> date:
        """Original occurrence date; differs from date once an exception is moved."""
        return self.instance_date or self.date

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "date": self.date.isoformat(),
            "timeSlot": self.time_slot,
            "tag": self.tag.value,
            "recurrence": self.recurrence.value,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.custom_tag is not None:
            data["customTag"] = self.custom_tag
        if self.custom_interval_days is not None:
            data["customIntervalDays"] = self.custom_interval_days
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        if self.instance_date is not None:
            data["instanceDate"] = self.instance_date.isoformat()
        if self.excluded_dates:
            data["excludedDates"] = [d.isoformat() for d in self.excluded_dates]
        if self.recurrence_end_date is not None:
            data["recurrenceEndDate"] = self.recurrence_end_date.isoformat()
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Event':
        """
        Create from a dictionary (JSON deserialization).

        Raises KeyError/ValueError/TypeError for records that cannot be read.
        """
        interval = data.get("customIntervalDays", data.get("customRecurrence"))
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            date=parse_date(data["date"]),
            time_slot=data.get("timeSlot", TIME_SLOTS[0]),
            tag=Tag(data.get("tag", "private")),
            recurrence=Recurrence(data.get("recurrence", "none")),
            description=data.get("description"),
            custom_tag=data.get("customTag"),
            custom_interval_days=int(interval) if interval is not None else None,
            parent_id=data.get("parentId"),
            instance_date=parse_date(data["instanceDate"]) if data.get("instanceDate") else None,
            excluded_dates=[parse_date(d) for d in data.get("excludedDates") or []],
            recurrence_end_date=(
                parse_date(data["recurrenceEndDate"]) if data.get("recurrenceEndDate") else None
            ),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


# ==================== Parsing ====================

def parse_date(value) -> date:
    """
    Read a calendar date from a stored value.

    Accepts date objects, 'YYYY-MM-DD' strings and full ISO timestamps
    (older documents stored instants; those are mapped to the local day).
    """
    if isinstance(value, datetime):
        return to_local_date(value)
    if isinstance(value, date):
        return value
    text = str(value)
    if len(text) == 10:
        return date.fromisoformat(text)
    return to_local_date(isoparse(text))


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    dt = value if isinstance(value, datetime) else isoparse(str(value))
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt


# ==================== Classification ====================

def is_simple_event(event: Event) -> bool:
    return event.recurrence == Recurrence.NONE and not event.parent_id


def is_recurring_parent(event: Event) -> bool:
    return event.recurrence != Recurrence.NONE and not event.parent_id


def is_virtual_instance(event: Event) -> bool:
    return bool(event.parent_id) and event.id.startswith(event.parent_id + VIRTUAL_ID_SEPARATOR)


def available_scopes(event: Event) -> list[Scope]:
    """Scopes a caller may offer for an edit/delete prompt on this event."""
    if is_simple_event(event):
        return [Scope.SINGLE]
    return [Scope.SINGLE, Scope.FUTURE, Scope.ALL]


# ==================== Identity ====================

def new_event_id() -> str:
    """Fresh identifier for a simple event or recurring parent."""
    millis = int(now_utc().timestamp() * 1000)
    return f"event_{millis}_{uuid.uuid4().hex[:9]}"


def make_virtual_id(parent_id: str, occurrence: date) -> str:
    """
    Identity of an occurrence of a series.

    Fully determined by (parent_id, occurrence): the suffix is the epoch
    milliseconds of local midnight of the occurrence date.

    The suffix depends on the configured timezone. After a timezone change,
    stored exception records keep their old ids and no longer match the
    virtual ids of their occurrences; the parent's excluded_dates still hide
    the replaced occurrences, so range queries stay correct.
    """
    return f"{parent_id}{VIRTUAL_ID_SEPARATOR}{date_to_timestamp_ms(occurrence)}"


def parse_virtual_id(event_id: str) -> Optional[tuple[str, date]]:
    """
    Split a virtual id into (parent_id, occurrence date).

    Returns None if the id does not end in a timestamp suffix. A successful
    parse does not prove the parent exists.
    """
    parent_id, sep, suffix = event_id.rpartition(VIRTUAL_ID_SEPARATOR)
    if not sep or not parent_id:
        return None
    digits = suffix[1:] if suffix.startswith("-") else suffix
    if not digits.isdigit():
        return None
    try:
        return parent_id, timestamp_ms_to_date(int(suffix))
    except (OverflowError, OSError, ValueError):
        return None


# ==================== Derivation ====================

def make_virtual_instance(parent: Event, occurrence: date) -> Event:
    """Synthesize the occurrence of ``parent`` on ``occurrence``."""
    return replace(
        parent,
        id=make_virtual_id(parent.id, occurrence),
        date=occurrence,
        parent_id=parent.id,
        instance_date=occurrence,
        excluded_dates=[],
        recurrence_end_date=None,
    )


def normalize_patch(patch: dict) -> dict:
    """
    Validate and coerce a patch dictionary.

    Raises:
        ValueError: if the patch names a field that cannot be patched.
    """
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")

    normalized = dict(patch)
    if "date" in normalized:
        normalized["date"] = parse_date(normalized["date"])
    if "tag" in normalized and not isinstance(normalized["tag"], Tag):
        normalized["tag"] = Tag(normalized["tag"])
    if "time_slot" in normalized and normalized["time_slot"] not in TIME_SLOTS:
        raise ValueError(f"Unknown time slot: {normalized['time_slot']!r}")
    return normalized


def apply_patch(event: Event, patch: dict) -> Event:
    """Return a copy of ``event`` with a normalized patch applied."""
    return replace(event, **patch, updated_at=now_utc())
