from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, List, Mapping, Optional, Type, TypeVar, Union

from pydantic.alias_generators import to_snake
from sqlalchemy import func
from sqlmodel import Session, col, select

from bts_inventory.data.db_context import record_change
from bts_inventory.data.payloads import parse_timestamp, record_from_snapshot, snapshot, tombstone
from bts_inventory.errors import UnknownFieldError
from bts_inventory.models.base import SYNC_COLUMNS, EntityType, SyncModel, utc_now
from bts_inventory.models.outbox import OutboxOperation

if TYPE_CHECKING:
    from bts_inventory.data.local_store import LocalStore

T = TypeVar("T", bound=SyncModel)


class SyncRepository(Generic[T]):
    """
    Base class for every synchronised entity table.

    Each write stamps the sync metadata (pending, dirty, last_modified) and
    appends exactly one outbox entry in the same transaction. Rows are
    soft-deleted through ``deleted_at`` and every read skips them.

    Operations take an optional ``session``; without one they run in their
    own transaction opened from the store.
    """
    model_type: Type[T]
    entity_type: EntityType
    fields: Type[Enum]
    order_by: str = "last_modified"

    def __init__(self, store: "LocalStore"):
        self.store = store
        self.table_name = self.model_type.__tablename__

    # --- READS ---

    def list_all(self, session: Optional[Session] = None) -> List[T]:
        statement = self._live().order_by(col(getattr(self.model_type, self.order_by)).desc())
        with self.store.transaction(session) as s:
            return list(s.exec(statement).all())

    def get(self, entity_id: str, session: Optional[Session] = None) -> Optional[T]:
        with self.store.transaction(session) as s:
            return self._get_live(s, entity_id)

    def find_by(self, field: Union[Enum, str], value: Any, session: Optional[Session] = None) -> List[T]:
        column = getattr(self.model_type, self._resolve_field(field).value)
        statement = self._live().where(column == value).order_by(col(getattr(self.model_type, self.order_by)).desc())
        with self.store.transaction(session) as s:
            return list(s.exec(statement).all())

    def count(self, session: Optional[Session] = None) -> int:
        statement = (
            select(func.count())
            .select_from(self.model_type)
            .where(col(self.model_type.deleted_at).is_(None))
        )
        with self.store.transaction(session) as s:
            return s.exec(statement).one()

    # --- WRITES ---

    def add(self, record: T, session: Optional[Session] = None) -> T:
        with self.store.transaction(session) as s:
            return self._write_new(s, record)

    def update(self, entity_id: str, changes: Mapping[str, Any], session: Optional[Session] = None) -> Optional[T]:
        """Merges ``changes`` into the live record. Returns None when there is no such record."""
        self._check_changes(changes)
        with self.store.transaction(session) as s:
            record = self._get_live(s, entity_id)
            if record is None:
                return None
            return self._write_changes(s, record, changes)

    def remove(self, entity_id: str, session: Optional[Session] = None) -> bool:
        """Soft delete. The row stays; a delete entry carrying the tombstone is queued."""
        with self.store.transaction(session) as s:
            record = self._get_live(s, entity_id)
            if record is None:
                return False

            now = utc_now()
            record.deleted_at = now
            record.mark_pending(now)
            s.add(record)
            s.flush()
            self._enqueue(s, record, OutboxOperation.DELETE, tombstone(record.id, now), now)
            return True

    # --- SYNC HOOKS (called by the sync engine inside its transaction) ---

    def mark_synced(self, session: Session, entity_id: str, now: datetime) -> bool:
        record = session.get(self.model_type, entity_id)
        if record is None:
            return False
        record.mark_synced(now)
        session.add(record)
        session.flush()
        record_change(session, self.table_name, [entity_id])
        return True

    def apply_remote(self, session: Session, data: Mapping[str, Any], now: datetime) -> T:
        """
        Upserts a server-originated snapshot. The result is always synced and
        clean, whatever the local state was. Applying the same snapshot twice
        leaves the record as the first application did.
        """
        incoming = record_from_snapshot(self.entity_type, data)
        last_modified = parse_timestamp(data.get("lastModified"))
        record = session.get(self.model_type, incoming.id)

        if record is None:
            record = incoming
            record.last_modified = last_modified or now
        else:
            present = {to_snake(key) for key in data}
            for name in self._business_fields():
                if name in present:
                    setattr(record, name, getattr(incoming, name))
            record.last_modified = last_modified or record.last_modified

        record.deleted_at = parse_timestamp(data.get("deletedAt"))
        record.mark_synced(now)
        session.add(record)
        session.flush()
        self._apply_children(session, record, data)
        record_change(session, self.table_name, [record.id])
        return record

    # --- INTERNALS ---

    def _live(self):
        return select(self.model_type).where(col(self.model_type.deleted_at).is_(None))

    def _get_live(self, session: Session, entity_id: str) -> Optional[T]:
        record = session.get(self.model_type, entity_id)
        if record is None or record.deleted_at is not None:
            return None
        return record

    def _resolve_field(self, field: Union[Enum, str]) -> Enum:
        if isinstance(field, Enum) and not isinstance(field, self.fields):
            raise UnknownFieldError(f"{field!r} is not a {self.entity_type.value} field")
        try:
            return self.fields(field)
        except ValueError:
            raise UnknownFieldError(f"{self.entity_type.value} cannot be searched by {field!r}") from None

    def _business_fields(self) -> List[str]:
        return [name for name in self.model_type.model_fields if name not in SYNC_COLUMNS and name != "id"]

    def _check_changes(self, changes: Mapping[str, Any]) -> None:
        unknown = set(changes) - set(self.model_type.model_fields)
        if unknown:
            raise ValueError(f"Unknown {self.entity_type.value} fields: {sorted(unknown)}")
        protected = set(changes) & (SYNC_COLUMNS | {"id"})
        if protected:
            raise ValueError(f"Sync metadata cannot be changed directly: {sorted(protected)}")

    def _write_new(self, session: Session, record: T, **children) -> T:
        now = utc_now()
        record.mark_pending(now)
        record.last_synced_at = None
        record.deleted_at = None
        session.add(record)
        session.flush()
        self._write_children(session, record, **children)
        self._enqueue(session, record, OutboxOperation.UPSERT, self._snapshot(session, record), now)
        return record

    def _write_changes(self, session: Session, record: T, changes: Mapping[str, Any], **children) -> T:
        # Validate the merged state, then copy only the changed fields over
        merged = self.model_type.model_validate({**record.model_dump(), **changes})
        for name in changes:
            setattr(record, name, getattr(merged, name))

        now = utc_now()
        record.mark_pending(now)
        session.add(record)
        session.flush()
        self._write_children(session, record, **children)
        self._enqueue(session, record, OutboxOperation.UPSERT, self._snapshot(session, record), now)
        return record

    def _enqueue(self, session: Session, record: T, operation: OutboxOperation, data: dict, now: datetime) -> None:
        self.store.outbox.enqueue(session, self.entity_type, record.id, operation, data, now)
        record_change(session, self.table_name, [record.id])

    def _snapshot(self, session: Session, record: T) -> dict:
        return snapshot(record)

    def _write_children(self, session: Session, record: T, **children) -> None:
        pass

    def _apply_children(self, session: Session, record: T, data: Mapping[str, Any]) -> None:
        pass
