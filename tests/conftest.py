"""Shared fixtures for the slotcal test suite."""

from datetime import date

import pytest

from slotcal.event_model import Event, Recurrence
from slotcal.event_storage import MemoryEventStorage
from slotcal.event_store import EventStore
from slotcal.timezone_utils import set_timezone


@pytest.fixture(autouse=True)
def utc_timezone():
    """Run every test in UTC and restore it afterwards."""
    set_timezone("UTC")
    yield
    set_timezone("UTC")


@pytest.fixture
def storage() -> MemoryEventStorage:
    return MemoryEventStorage()


@pytest.fixture
def store(storage) -> EventStore:
    return EventStore(storage)


@pytest.fixture
def weekly_parent(store) -> Event:
    """Weekly series starting Monday 2024-01-01."""
    return store.create(
        title="Standup",
        date=date(2024, 1, 1),
        time_slot="08:00-10:00",
        tag="work",
        recurrence=Recurrence.WEEKLY,
    )
