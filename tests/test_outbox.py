import datetime as dt

import pytest

from bts_inventory.data.outbox import CONFLICT_ERROR, retry_delay
from bts_inventory.models.base import EntityType, SyncStatus


NOW = dt.datetime(2026, 1, 15, 9, 30, 0, tzinfo=dt.timezone.utc)


@pytest.mark.parametrize("failures", [1, 2, 3, 5, 10, 11, 25])
def test_backoff_grows_linearly_up_to_five_minutes(store, make_employee, outbox_entries, failures):
    store.employees.add(make_employee())
    entry_id = outbox_entries()[0].id

    for _ in range(failures):
        with store.transaction() as session:
            store.outbox.mark_failed(session, [entry_id], "ConnectError: offline", NOW)

    entry = outbox_entries()[0]
    expected = min(300, 30 * failures)
    assert entry.attempts == failures
    assert entry.last_error == "ConnectError: offline"
    assert abs((entry.next_retry_at - NOW).total_seconds() - expected) <= 1


def test_retry_delay_is_capped():
    assert retry_delay(1) == dt.timedelta(seconds=30)
    assert retry_delay(10) == dt.timedelta(seconds=300)
    assert retry_delay(40) == dt.timedelta(seconds=300)


def test_due_batch_skips_backed_off_entries_and_keeps_order(store, make_employee, outbox_entries):
    for _ in range(4):
        store.employees.add(make_employee())
    ids = [e.id for e in outbox_entries()]

    with store.transaction() as session:
        store.outbox.mark_failed(session, [ids[1]], "timeout", NOW)

    with store.transaction() as session:
        due = [e.id for e in store.outbox.due_batch(session, 100, NOW)]
        limited = [e.id for e in store.outbox.due_batch(session, 2, NOW)]
        later = [e.id for e in store.outbox.due_batch(session, 100, NOW + dt.timedelta(seconds=31))]

    assert due == [ids[0], ids[2], ids[3]]
    assert limited == [ids[0], ids[2]]
    assert later == ids


def test_acknowledge_deletes_only_given_entries(store, make_employee, outbox_entries):
    store.employees.add(make_employee())
    store.employees.add(make_employee())
    first, second = [e.id for e in outbox_entries()]

    with store.transaction() as session:
        assert store.outbox.acknowledge(session, [first, 9999]) == 1
        assert store.outbox.count(session) == 1

    assert [e.id for e in outbox_entries()] == [second]


def test_conflict_keeps_entry_queued(store, make_employee, outbox_entries):
    employee = store.employees.add(make_employee())

    with store.transaction() as session:
        assert store.outbox.mark_conflict(session, EntityType.EMPLOYEES, employee.id) is True

    assert store.employees.get(employee.id).sync_status == SyncStatus.CONFLICT
    entries = outbox_entries()
    assert len(entries) == 1
    assert entries[0].last_error == CONFLICT_ERROR

    with store.transaction() as session:
        assert [e.id for e in store.outbox.due_batch(session, 100, NOW)] == [entries[0].id]


def test_local_write_clears_conflict(store, make_employee):
    employee = store.employees.add(make_employee())
    with store.transaction() as session:
        store.outbox.mark_conflict(session, EntityType.EMPLOYEES, employee.id)

    store.employees.update(employee.id, {"phone": "777"})

    assert store.employees.get(employee.id).sync_status == SyncStatus.PENDING


def test_conflict_for_unknown_record(store):
    with store.transaction() as session:
        assert store.outbox.mark_conflict(session, EntityType.PRODUCTS, "missing") is False


def test_pending_for_and_latest_id(store, make_employee):
    employee = store.employees.add(make_employee())
    store.employees.update(employee.id, {"phone": "1"})

    with store.transaction() as session:
        pending = store.outbox.pending_for(session, EntityType.EMPLOYEES, employee.id)
        assert len(pending) == 2
        assert store.outbox.latest_id(session, EntityType.EMPLOYEES, employee.id) == pending[-1].id
        assert store.outbox.latest_id(session, EntityType.EMPLOYEES, "other") is None


def test_due_batch_holds_entries_behind_a_backed_off_entry_of_the_same_entity(store, make_employee, outbox_entries):
    employee = store.employees.add(make_employee())
    store.employees.add(make_employee())
    store.employees.update(employee.id, {"phone": "1"})
    first, other, newer = [e.id for e in outbox_entries()]

    with store.transaction() as session:
        store.outbox.mark_failed(session, [first], "timeout", NOW)

    with store.transaction() as session:
        due = [e.id for e in store.outbox.due_batch(session, 100, NOW + dt.timedelta(seconds=10))]
        later = [e.id for e in store.outbox.due_batch(session, 100, NOW + dt.timedelta(seconds=31))]

    assert due == [other]
    assert later == [first, other, newer]
