"""
Outbox payload codec.

Every outbox row stores a versioned envelope:

    {"v": 1, "entity_type": "employees", "operation": "upsert", "data": {...}}

``data`` is the camelCase snapshot that goes on the wire. Decoding validates
it against the table model registered for ``entity_type``, so malformed rows
fail here with PayloadError instead of reaching the server or the database.
"""
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel, to_snake
from sqlmodel import SQLModel

from bts_inventory.errors import PayloadError
from bts_inventory.models.base import LOCAL_ONLY_COLUMNS, EntityType, SyncModel, as_utc
from bts_inventory.models.outbox import OutboxOperation
from bts_inventory.models.registry import ENTITY_MODELS

PAYLOAD_VERSION = 1


class OutboxPayload(SQLModel):
    v: int = PAYLOAD_VERSION
    entity_type: EntityType
    operation: OutboxOperation
    data: Dict[str, Any]


class Tombstone(BaseModel):
    id: str
    deletedAt: datetime


def snapshot(record: SQLModel, exclude=LOCAL_ONLY_COLUMNS) -> Dict[str, Any]:
    """camelCase, JSON-safe copy of a record's fields."""
    fields = record.model_dump(mode="json", exclude=set(exclude))
    return {to_camel(name): value for name, value in fields.items()}


def tombstone(entity_id: str, deleted_at: datetime) -> Dict[str, Any]:
    return {"id": entity_id, "deletedAt": deleted_at.isoformat()}


def snake_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {to_snake(key): value for key, value in data.items()}


def record_from_snapshot(entity_type: EntityType, data: Mapping[str, Any]) -> SyncModel:
    """Builds a detached, validated table model from a snapshot."""
    model = ENTITY_MODELS[entity_type]
    if not data.get("id"):
        raise PayloadError(f"{entity_type.value} snapshot has no id")

    fields = {
        name: value
        for name, value in snake_keys(data).items()
        if name in model.model_fields and name not in LOCAL_ONLY_COLUMNS
    }
    try:
        record = model.model_validate(fields)
    except ValidationError as exc:
        raise PayloadError(f"Invalid {entity_type.value} snapshot: {exc}") from exc

    for name in model.model_fields:
        value = getattr(record, name)
        if isinstance(value, datetime):
            setattr(record, name, as_utc(value))
    return record


def encode_payload(entity_type: EntityType, operation: OutboxOperation, data: Dict[str, Any]) -> str:
    return OutboxPayload(entity_type=entity_type, operation=operation, data=data).model_dump_json()


def decode_payload(text: str) -> OutboxPayload:
    try:
        payload = OutboxPayload.model_validate_json(text)
    except ValidationError as exc:
        raise PayloadError(f"Malformed outbox payload: {exc}") from exc

    if payload.v != PAYLOAD_VERSION:
        raise PayloadError(f"Unsupported outbox payload version {payload.v}")

    if payload.operation == OutboxOperation.DELETE:
        try:
            Tombstone.model_validate(payload.data)
        except ValidationError as exc:
            raise PayloadError(f"Malformed delete payload: {exc}") from exc
    else:
        record_from_snapshot(payload.entity_type, payload.data)
    return payload


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Lenient helper for the optional timestamps carried in snapshots."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError as exc:
        raise PayloadError(f"Invalid timestamp {value!r}") from exc
