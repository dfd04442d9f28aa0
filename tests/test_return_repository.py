import datetime as dt

from bts_inventory.data.payloads import decode_payload
from bts_inventory.models.base import SyncStatus, utc_now
from bts_inventory.models.employee import EmployeeRole
from bts_inventory.models.return_record import ReceiverEntry, ReturnField, ReturnStatus


def receiver(employee_id, position=EmployeeRole.SUPERVISOR):
    return ReceiverEntry(
        employee_id=employee_id,
        position=position,
        received_date=dt.date(2024, 5, 3),
        location="Warehouse A",
    )


def test_add_writes_receivers_and_full_snapshot(store, make_return, outbox_entries):
    record = store.returns.add(make_return(), receivers=[receiver("e-1"), receiver("e-2")])

    assert {r.employee_id for r in store.returns.receivers(record.id)} == {"e-1", "e-2"}

    entries = outbox_entries()
    assert len(entries) == 1
    data = decode_payload(entries[0].payload).data
    assert sorted(data["receivedByEmployeeIds"]) == ["e-1", "e-2"]
    assert {e["employeeId"] for e in data["receivedByEntries"]} == {"e-1", "e-2"}
    assert data["receivedByEntries"][0]["location"] == "Warehouse A"


def test_update_replaces_receivers_wholesale(store, make_return, outbox_entries):
    record = store.returns.add(make_return(), receivers=[receiver("e-1"), receiver("e-2")])

    store.returns.update(record.id, {"status": ReturnStatus.APPROVED}, receivers=[receiver("e-3")])

    assert [r.employee_id for r in store.returns.receivers(record.id)] == ["e-3"]
    assert store.returns.get(record.id).status == ReturnStatus.APPROVED
    assert len(outbox_entries()) == 2


def test_update_without_receivers_keeps_current_set(store, make_return, outbox_entries):
    record = store.returns.add(make_return(), receivers=[receiver("e-1")])

    store.returns.update(record.id, {"remarks": "checked"})

    assert [r.employee_id for r in store.returns.receivers(record.id)] == ["e-1"]
    data = decode_payload(outbox_entries()[-1].payload).data
    assert data["remarks"] == "checked"
    assert data["receivedByEmployeeIds"] == ["e-1"]


def test_repeated_employee_is_stored_once(store, make_return):
    record = store.returns.add(
        make_return(),
        receivers=[receiver("e-1", EmployeeRole.EMPLOYEE), receiver("e-1", EmployeeRole.ADMIN)],
    )

    entries = store.returns.receivers(record.id)
    assert len(entries) == 1
    assert entries[0].position == EmployeeRole.ADMIN


def test_find_by_product(store, make_return):
    record = store.returns.add(make_return(product_id="prod-7"))
    store.returns.add(make_return())

    assert [r.id for r in store.returns.find_by(ReturnField.PRODUCT_ID, "prod-7")] == [record.id]


def test_server_change_replaces_receivers_when_present(store, make_return):
    record = store.returns.add(make_return(), receivers=[receiver("e-1")])
    now = utc_now()
    data = {
        "id": record.id,
        "rrspNumber": record.rrsp_number,
        "productId": record.product_id,
        "returnedByEmployeeId": record.returned_by_employee_id,
        "returnDate": "2024-05-02",
        "status": "approved",
        "lastModified": "2024-06-01T08:00:00Z",
        "receivedByEntries": [
            {"employeeId": "e-9", "position": "admin", "receivedDate": "2024-06-01", "location": "HQ"},
        ],
    }

    with store.transaction() as session:
        store.returns.apply_remote(session, data, now)

    stored = store.returns.get(record.id)
    assert stored.status == ReturnStatus.APPROVED
    assert stored.sync_status == SyncStatus.SYNCED
    assert stored.last_modified == dt.datetime(2024, 6, 1, 8, 0, 0, tzinfo=dt.timezone.utc)
    assert [r.employee_id for r in store.returns.receivers(record.id)] == ["e-9"]

    data.pop("receivedByEntries")
    with store.transaction() as session:
        store.returns.apply_remote(session, data, now)
    assert [r.employee_id for r in store.returns.receivers(record.id)] == ["e-9"]
