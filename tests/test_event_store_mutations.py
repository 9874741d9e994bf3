"""Tests for scoped edits, deletes and conversions in EventStore."""

from datetime import date

import pytest

from slotcal.event_model import Recurrence, Scope, Tag, is_simple_event, is_recurring_parent, make_virtual_id
from slotcal.exceptions import InvalidRecurrenceError, InvalidScopeError, NotFoundError

from .helpers import dates_of

pytestmark = pytest.mark.unit

JAN_1 = date(2024, 1, 1)
FEB_5 = date(2024, 2, 5)


def occurrence_id(parent, day: int, month: int = 1):
    return make_virtual_id(parent.id, date(2024, month, day))


# ==================== Create ====================

def test_create_simple_event_strips_interval(store, storage):
    event = store.create(title="Lunch", date=date(2024, 1, 3), custom_interval_days=5)

    assert is_simple_event(event)
    assert event.custom_interval_days is None
    assert event.created_at is not None and event.created_at == event.updated_at
    assert storage.document["version"] == 0
    assert storage.document["state"]["events"] == [event.to_dict()]


def test_create_rejects_custom_without_interval(store):
    with pytest.raises(InvalidRecurrenceError):
        store.create(title="Gym", date=JAN_1, recurrence="custom")
    assert len(store) == 0


def test_create_rejects_unknown_time_slot(store):
    with pytest.raises(ValueError):
        store.create(title="Gym", date=JAN_1, time_slot="09:00-11:00")


def test_change_callback_runs_after_mutations(store):
    calls = []
    store.set_on_change_callback(lambda: calls.append(1))

    event = store.create(title="Lunch", date=JAN_1)
    store.delete_scoped(event.id, Scope.SINGLE)
    assert len(calls) == 2


# ==================== Simple Events ====================

def test_simple_event_single_edit_and_delete(store):
    event = store.create(title="Lunch", date=JAN_1)

    edited = store.update_scoped(event.id, "single", {"title": "Brunch", "tag": "balance"})
    assert edited.id == event.id
    assert store.get_event_by_id(event.id).title == "Brunch"
    assert store.get_event_by_id(event.id).tag == Tag.BALANCE

    store.delete_scoped(event.id, "single")
    assert event.id not in store


@pytest.mark.parametrize("scope", ["future", "all"])
def test_series_scopes_on_simple_event_are_rejected(store, storage, scope):
    event = store.create(title="Lunch", date=JAN_1)
    document = storage.document

    with pytest.raises(InvalidScopeError):
        store.delete_scoped(event.id, scope)
    with pytest.raises(InvalidScopeError):
        store.update_scoped(event.id, scope, {"title": "Brunch"})

    assert store.events == [event]
    assert storage.document == document


def test_missing_target_is_not_found(store, weekly_parent):
    with pytest.raises(NotFoundError):
        store.delete_scoped("event_0_missing", "single")
    with pytest.raises(NotFoundError):
        store.update_scoped("event_0_missing", "all", {"title": "x"})
    # Not a date of the weekly series
    with pytest.raises(NotFoundError):
        store.delete_scoped(occurrence_id(weekly_parent, 2), "single")


def test_invalid_patch_leaves_store_unchanged(store, weekly_parent):
    with pytest.raises(ValueError):
        store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"recurrence": "monthly"})
    assert store.events == [weekly_parent]


# ==================== Delete ====================

def test_delete_single_virtual_instance(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 15), "single")

    parent = store.get_event_by_id(weekly_parent.id)
    assert parent.excluded_dates == [date(2024, 1, 15)]
    assert parent.title == weekly_parent.title
    assert dates_of(store.get_events_in_range(JAN_1, date(2024, 1, 29))) == [
        date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 22), date(2024, 1, 29),
    ]


def test_delete_single_is_idempotent_on_exclusions(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 15), "single")
    store.delete_scoped(occurrence_id(weekly_parent, 15), "single")
    assert store.get_event_by_id(weekly_parent.id).excluded_dates == [date(2024, 1, 15)]


def test_delete_single_exception_record(store, weekly_parent):
    exception = store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "Planning"})

    store.delete_scoped(exception.id, "single")

    assert exception.id not in store
    assert weekly_parent.id in store
    assert dates_of(store.get_events_in_range(JAN_1, date(2024, 1, 15))) == [
        date(2024, 1, 1), date(2024, 1, 15),
    ]


def test_delete_single_on_parent_removes_first_occurrence(store, weekly_parent):
    store.delete_scoped(weekly_parent.id, "single")

    assert weekly_parent.id in store
    assert dates_of(store.get_events_in_range(JAN_1, date(2024, 1, 15))) == [
        date(2024, 1, 8), date(2024, 1, 15),
    ]


def test_delete_future_truncates_series(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 29), "single")
    store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "Kept"})
    dropped = store.update_scoped(occurrence_id(weekly_parent, 22), "single", {"title": "Dropped"})

    store.delete_scoped(occurrence_id(weekly_parent, 15), "future")

    parent = store.get_event_by_id(weekly_parent.id)
    assert parent.recurrence_end_date == date(2024, 1, 14)
    assert parent.excluded_dates == [date(2024, 1, 8)]
    assert dropped.id not in store

    events = store.get_events_in_range(JAN_1, date(2024, 3, 31))
    assert [(e.date, e.title) for e in events] == [
        (date(2024, 1, 1), "Standup"), (date(2024, 1, 8), "Kept"),
    ]


def test_delete_future_from_exception_record(store, weekly_parent):
    exception = store.update_scoped(occurrence_id(weekly_parent, 15), "single", {"title": "Moved"})

    store.delete_scoped(exception.id, "future")

    assert exception.id not in store
    assert dates_of(store.get_events_in_range(JAN_1, FEB_5)) == [date(2024, 1, 1), date(2024, 1, 8)]


def test_repeated_future_deletes_keep_shortening(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 15), "future")
    store.delete_scoped(weekly_parent.id, "single")
    store.delete_scoped(occurrence_id(weekly_parent, 8), "future")

    parent = store.get_event_by_id(weekly_parent.id)
    assert parent.recurrence_end_date == date(2024, 1, 7)
    assert parent.excluded_dates == [JAN_1]
    assert store.get_events_in_range(JAN_1, FEB_5) == []
    with pytest.raises(NotFoundError):
        store.delete_scoped(occurrence_id(weekly_parent, 15), "single")


def test_delete_future_from_first_occurrence_removes_series(store, weekly_parent):
    exception = store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "Edited"})

    store.delete_scoped(occurrence_id(weekly_parent, 1), "future")

    assert weekly_parent.id not in store
    assert exception.id not in store
    assert store.get_events_in_range(JAN_1, FEB_5) == []


def test_delete_all_cascades_to_exceptions(store, weekly_parent):
    other = store.create(title="Rent", date=JAN_1, recurrence="monthly")
    store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "A"})
    store.update_scoped(occurrence_id(weekly_parent, 15), "single", {"title": "B"})

    store.delete_scoped(occurrence_id(weekly_parent, 22), "all")

    assert store.events == [other]
    assert [e.title for e in store.get_events_in_range(JAN_1, FEB_5)] == ["Rent", "Rent"]


# ==================== Edit ====================

def test_edit_single_materializes_exception(store, weekly_parent):
    virtual_id = occurrence_id(weekly_parent, 8)

    exception = store.update_scoped(virtual_id, "single", {"title": "Planning", "time_slot": "14:00-16:00"})

    assert exception.id == virtual_id
    assert exception.parent_id == weekly_parent.id
    assert exception.instance_date == date(2024, 1, 8)
    assert exception.tag == weekly_parent.tag
    assert store.is_materialized(exception)
    assert store.get_event_by_id(weekly_parent.id).excluded_dates == [date(2024, 1, 8)]


def test_edit_single_twice_updates_same_exception(store, weekly_parent):
    virtual_id = occurrence_id(weekly_parent, 8)
    store.update_scoped(virtual_id, "single", {"title": "Planning"})
    store.update_scoped(virtual_id, "single", {"description": "Bring laptops"})

    assert len(store) == 2
    exception = store.get_event_by_id(virtual_id)
    assert (exception.title, exception.description) == ("Planning", "Bring laptops")


def test_edit_single_on_parent_edits_first_occurrence(store, weekly_parent):
    exception = store.update_scoped(weekly_parent.id, "single", {"title": "Kickoff"})

    assert exception.id == occurrence_id(weekly_parent, 1)
    events = store.get_events_in_range(JAN_1, date(2024, 1, 8))
    assert [e.title for e in events] == ["Kickoff", "Standup"]


def test_edit_future_splits_series(store, weekly_parent):
    new_parent = store.update_scoped(occurrence_id(weekly_parent, 15), "future", {"title": "Daily sync"})

    assert new_parent.id != weekly_parent.id
    assert is_recurring_parent(new_parent)
    assert new_parent.date == date(2024, 1, 15)
    assert new_parent.recurrence == Recurrence.WEEKLY
    assert store.get_event_by_id(weekly_parent.id).recurrence_end_date == date(2024, 1, 14)

    events = store.get_events_in_range(JAN_1, FEB_5)
    assert dates_of(events) == [
        date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15),
        date(2024, 1, 22), date(2024, 1, 29), date(2024, 2, 5),
    ]
    for event in events:
        if event.date < date(2024, 1, 15):
            assert (event.title, event.parent_id) == ("Standup", weekly_parent.id)
        else:
            assert (event.title, event.parent_id) == ("Daily sync", new_parent.id)


def test_edit_future_keeps_deleted_occurrences_deleted(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 29), "single")
    store.update_scoped(occurrence_id(weekly_parent, 22), "single", {"title": "Edited"})

    new_parent = store.update_scoped(occurrence_id(weekly_parent, 15), "future", {"title": "Daily sync"})

    assert new_parent.excluded_dates == [date(2024, 1, 29)]
    events = store.get_events_in_range(date(2024, 1, 15), FEB_5)
    assert [(e.date.day, e.title) for e in events] == [
        (15, "Daily sync"), (22, "Daily sync"), (5, "Daily sync"),
    ]


def test_edit_future_from_first_occurrence_replaces_series(store, weekly_parent):
    new_parent = store.update_scoped(weekly_parent.id, "future", {"title": "Renamed"})

    assert weekly_parent.id not in store
    assert store.events == [new_parent]
    assert new_parent.date == JAN_1


def test_edit_all_updates_parent_but_not_exceptions(store, weekly_parent):
    store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "Planning"})

    result = store.update_scoped(occurrence_id(weekly_parent, 22), "all", {"title": "Team sync"})

    assert result.id == weekly_parent.id
    events = store.get_events_in_range(JAN_1, date(2024, 1, 22))
    assert [e.title for e in events] == ["Team sync", "Planning", "Team sync", "Team sync"]


def test_edit_all_with_date_shifts_series(store, weekly_parent):
    store.delete_scoped(occurrence_id(weekly_parent, 22), "single")

    store.update_scoped(occurrence_id(weekly_parent, 8), "all", {"date": date(2024, 1, 9)})

    parent = store.get_event_by_id(weekly_parent.id)
    assert parent.date == date(2024, 1, 2)
    assert parent.excluded_dates == [date(2024, 1, 23)]
    assert dates_of(store.get_events_in_range(JAN_1, date(2024, 1, 31))) == [
        date(2024, 1, 2), date(2024, 1, 9), date(2024, 1, 16), date(2024, 1, 30),
    ]


# ==================== Conversions ====================

def test_convert_simple_to_recurring(store):
    event = store.create(title="Yoga", date=JAN_1)

    parent = store.convert_to_recurring(event.id, "custom", 3, patch={"title": "Yoga class"})

    assert is_recurring_parent(parent)
    assert parent.custom_interval_days == 3
    assert [e.title for e in store.get_events_in_range(JAN_1, date(2024, 1, 7))] == ["Yoga class"] * 3


def test_convert_to_recurring_rejects_series_and_none(store, weekly_parent):
    with pytest.raises(InvalidScopeError):
        store.convert_to_recurring(weekly_parent.id, "monthly")
    event = store.create(title="Yoga", date=JAN_1)
    with pytest.raises(InvalidRecurrenceError):
        store.convert_to_recurring(event.id, "none")


def test_convert_parent_to_simple_drops_exceptions(store, weekly_parent):
    exception = store.update_scoped(occurrence_id(weekly_parent, 8), "single", {"title": "Planning"})

    simple = store.convert_to_simple(weekly_parent.id)

    assert simple.id == weekly_parent.id
    assert is_simple_event(simple)
    assert exception.id not in store
    assert store.get_events_in_range(JAN_1, FEB_5) == [simple]


def test_convert_occurrence_to_simple(store, weekly_parent):
    simple = store.convert_to_simple(occurrence_id(weekly_parent, 15))

    assert is_simple_event(simple)
    assert simple.date == date(2024, 1, 15)
    assert simple.id != occurrence_id(weekly_parent, 15)
    events = store.get_events_in_range(date(2024, 1, 15), date(2024, 1, 15))
    assert events == [simple]
    assert store.get_event_by_id(weekly_parent.id).excluded_dates == [date(2024, 1, 15)]

    with pytest.raises(InvalidScopeError):
        store.convert_to_simple(simple.id)


def test_change_recurrence(store, weekly_parent):
    result = store.change_recurrence(occurrence_id(weekly_parent, 8), "monthly")

    assert result.id == weekly_parent.id
    assert dates_of(store.get_events_in_range(JAN_1, date(2024, 3, 31))) == [
        date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1),
    ]
    with pytest.raises(InvalidRecurrenceError):
        store.change_recurrence(weekly_parent.id, "none")
    with pytest.raises(InvalidRecurrenceError):
        store.change_recurrence(weekly_parent.id, "custom", 0)
