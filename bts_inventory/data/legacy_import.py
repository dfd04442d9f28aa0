"""
Bulk import of a dump exported by the previous (browser storage) version of
the app. Replaces every table in one transaction and bypasses the outbox:
imported rows carry whatever sync state the dump recorded.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Union

from pydantic import ValidationError
from sqlalchemy import delete

from bts_inventory.data.db_context import record_change
from bts_inventory.data.payloads import parse_timestamp, record_from_snapshot, snake_keys
from bts_inventory.errors import PayloadError
from bts_inventory.models.activity_log import ActivityLog
from bts_inventory.models.base import EntityType, SyncStatus, utc_now
from bts_inventory.models.employee import Employee
from bts_inventory.models.outbox import OutboxEntry
from bts_inventory.models.product import Product
from bts_inventory.models.return_record import ReceiverEntry, ReturnReceiver, ReturnRecord
from bts_inventory.models.settings import SystemSettings

if TYPE_CHECKING:
    from bts_inventory.data.local_store import LocalStore

logger = logging.getLogger("LegacyImport")

# Dump key -> entity type, parents before children
DUMP_TABLES = (
    ("employees", EntityType.EMPLOYEES),
    ("products", EntityType.PRODUCTS),
    ("returns", EntityType.RETURNS),
    ("activityLogs", EntityType.ACTIVITY_LOGS),
    ("settings", EntityType.SETTINGS),
)

# Children first so the receivers foreign key never trips
CLEARED_TABLES = (ReturnReceiver, ReturnRecord, Product, Employee, ActivityLog, SystemSettings, OutboxEntry)


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def normalize_sync(raw: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Sync metadata for an imported row, from whichever spelling the dump used."""
    dirty = _first(raw, "isDirty", "is_dirty")
    is_dirty = True if dirty is None else bool(dirty)
    status = _first(raw, "syncStatus", "sync_status")
    return {
        "sync_status": SyncStatus(status) if status else (SyncStatus.PENDING if is_dirty else SyncStatus.SYNCED),
        "is_dirty": is_dirty,
        "last_modified": parse_timestamp(_first(raw, "lastModified", "last_modified", "updatedAt", "createdAt")) or now,
        "last_synced_at": parse_timestamp(_first(raw, "lastSyncedAt", "last_synced_at")),
        "deleted_at": parse_timestamp(_first(raw, "deletedAt", "deleted_at")),
    }


def replace_all(store: "LocalStore", dump: Mapping[str, Any]) -> Dict[str, int]:
    """
    Wipes all entity tables and the outbox, then inserts the dump.
    Returns the number of rows imported per dump key. Any invalid row
    aborts the whole import with PayloadError.
    """
    now = utc_now()
    counts: Dict[str, int] = {}

    with store.transaction() as session:
        conn = session.connection()
        for model in CLEARED_TABLES:
            conn.execute(delete(model))

        for key, entity_type in DUMP_TABLES:
            rows = dump.get(key) or []
            ids = []
            for raw in rows:
                record = record_from_snapshot(entity_type, raw)
                for name, value in normalize_sync(raw, now).items():
                    setattr(record, name, value)
                session.add(record)
                ids.append(record.id)

                if entity_type == EntityType.RETURNS:
                    # The return row has to be inserted before its receivers
                    session.flush()
                    _add_receivers(session, record.id, raw.get("receivedByEntries") or [])

            session.flush()
            counts[key] = len(rows)
            if ids:
                record_change(session, store.repositories[entity_type].table_name, ids)

    logger.info("Legacy dump imported: %s", counts)
    return counts


def _add_receivers(session, return_id: str, raw_entries) -> None:
    seen = set()
    for item in raw_entries:
        try:
            entry = ReceiverEntry.model_validate(snake_keys(item))
        except (ValidationError, AttributeError, TypeError) as exc:
            raise PayloadError(f"Invalid receiver on return {return_id}: {exc}") from exc
        if entry.employee_id in seen:
            continue
        seen.add(entry.employee_id)
        session.add(ReturnReceiver(
            return_id=return_id,
            employee_id=entry.employee_id,
            position=entry.position,
            received_date=entry.received_date,
            location=entry.location,
        ))


def import_file(store: "LocalStore", path: Union[str, Path]) -> Dict[str, int]:
    with open(path, "r", encoding="utf-8") as f:
        dump = json.load(f)
    if not isinstance(dump, dict):
        raise PayloadError(f"{path} does not contain a legacy dump object")
    return replace_all(store, dump)
