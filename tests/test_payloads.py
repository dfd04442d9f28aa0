import datetime as dt
import json

import pytest

from bts_inventory.data.payloads import (
    decode_payload,
    encode_payload,
    parse_timestamp,
    record_from_snapshot,
    snapshot,
)
from bts_inventory.errors import PayloadError
from bts_inventory.models.base import EntityType
from bts_inventory.models.employee import Employee
from bts_inventory.models.outbox import OutboxOperation
from bts_inventory.models.product import Product, ValueCategory


def test_snapshot_is_camel_case_without_local_columns():
    product = Product(article="Printer", date=dt.date(2024, 1, 2), value_category=ValueCategory.HIGH)

    data = snapshot(product)

    assert data["article"] == "Printer"
    assert data["valueCategory"] == "HV"
    assert data["date"] == "2024-01-02"
    assert "lastModified" in data
    assert "deletedAt" in data
    assert "syncStatus" not in data
    assert "isDirty" not in data
    assert "lastSyncedAt" not in data


def test_encoded_payload_is_a_versioned_envelope():
    text = encode_payload(EntityType.EMPLOYEES, OutboxOperation.DELETE, {"id": "e-1", "deletedAt": "2024-01-01T00:00:00"})

    assert json.loads(text) == {
        "v": 1,
        "entity_type": "employees",
        "operation": "delete",
        "data": {"id": "e-1", "deletedAt": "2024-01-01T00:00:00"},
    }
    assert decode_payload(text).operation == OutboxOperation.DELETE


def test_decode_validates_snapshot_against_entity_model():
    employee = Employee(full_name="Ben Cruz", email="ben@bts.local")
    text = encode_payload(EntityType.EMPLOYEES, OutboxOperation.UPSERT, snapshot(employee))

    payload = decode_payload(text)

    assert payload.entity_type == EntityType.EMPLOYEES
    assert payload.data["email"] == "ben@bts.local"


@pytest.mark.parametrize("text", [
    "not json",
    json.dumps({"v": 2, "entity_type": "employees", "operation": "upsert", "data": {"id": "x"}}),
    json.dumps({"v": 1, "entity_type": "widgets", "operation": "upsert", "data": {"id": "x"}}),
    json.dumps({"v": 1, "entity_type": "employees", "operation": "merge", "data": {"id": "x"}}),
    json.dumps({"v": 1, "entity_type": "employees", "operation": "upsert", "data": {"fullName": "No Id"}}),
    json.dumps({"v": 1, "entity_type": "products", "operation": "upsert", "data": {"id": "p-1", "unitValue": "lots"}}),
    json.dumps({"v": 1, "entity_type": "products", "operation": "delete", "data": {"id": "p-1"}}),
])
def test_malformed_payloads_are_rejected(text):
    with pytest.raises(PayloadError):
        decode_payload(text)


def test_record_from_snapshot_normalises_timestamps_to_utc():
    record = record_from_snapshot(EntityType.EMPLOYEES, {
        "id": "e-1",
        "fullName": "Ben Cruz",
        "email": "ben@bts.local",
        "createdAt": "2024-03-01T10:00:00+02:00",
        "syncStatus": "synced",
    })

    assert record.created_at == dt.datetime(2024, 3, 1, 8, 0, 0, tzinfo=dt.timezone.utc)
    # Local-only columns never come from a snapshot
    assert record.sync_status == "pending"


def test_parse_timestamp():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("2024-01-01T00:00:00Z") == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    with pytest.raises(PayloadError):
        parse_timestamp("yesterday")
