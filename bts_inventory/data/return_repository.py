from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError
from sqlmodel import Session, select

from bts_inventory.data.payloads import snake_keys, snapshot
from bts_inventory.data.sync_repository import SyncRepository
from bts_inventory.errors import PayloadError
from bts_inventory.models.base import EntityType
from bts_inventory.models.return_record import ReceiverEntry, ReturnField, ReturnReceiver, ReturnRecord


class ReturnRepository(SyncRepository[ReturnRecord]):
    """
    Returns are written together with their receiver entries. The receiver
    set is never patched: every write of the return deletes it and inserts
    the new one, and the outbox snapshot carries the full set.
    """
    model_type = ReturnRecord
    entity_type = EntityType.RETURNS
    fields = ReturnField
    order_by = "created_at"

    def add(
        self,
        record: ReturnRecord,
        receivers: Sequence[ReceiverEntry] = (),
        session: Optional[Session] = None,
    ) -> ReturnRecord:
        with self.store.transaction(session) as s:
            return self._write_new(s, record, receivers=receivers)

    def update(
        self,
        entity_id: str,
        changes: Mapping[str, Any],
        receivers: Optional[Sequence[ReceiverEntry]] = None,
        session: Optional[Session] = None,
    ) -> Optional[ReturnRecord]:
        """``receivers=None`` rewrites the current set unchanged."""
        self._check_changes(changes)
        with self.store.transaction(session) as s:
            record = self._get_live(s, entity_id)
            if record is None:
                return None
            if receivers is None:
                receivers = self.receivers(entity_id, session=s)
            return self._write_changes(s, record, changes, receivers=receivers)

    def receivers(self, return_id: str, session: Optional[Session] = None) -> List[ReceiverEntry]:
        statement = select(ReturnReceiver).where(ReturnReceiver.return_id == return_id)
        with self.store.transaction(session) as s:
            return [row.to_entry() for row in s.exec(statement).all()]

    def _write_children(self, session: Session, record: ReturnRecord, receivers: Sequence[ReceiverEntry] = ()) -> None:
        self._replace_receivers(session, record.id, receivers)

    def _replace_receivers(self, session: Session, return_id: str, entries: Sequence[ReceiverEntry]) -> None:
        for row in session.exec(select(ReturnReceiver).where(ReturnReceiver.return_id == return_id)).all():
            session.delete(row)
        session.flush()

        # One row per employee; a repeated employee keeps its last entry
        unique: Dict[str, ReceiverEntry] = {}
        for entry in entries:
            unique[entry.employee_id] = entry
        for entry in unique.values():
            session.add(ReturnReceiver(
                return_id=return_id,
                employee_id=entry.employee_id,
                position=entry.position,
                received_date=entry.received_date,
                location=entry.location,
            ))
        session.flush()

    def _snapshot(self, session: Session, record: ReturnRecord) -> dict:
        data = super()._snapshot(session, record)
        entries = self.receivers(record.id, session=session)
        data["receivedByEntries"] = [snapshot(entry) for entry in entries]
        data["receivedByEmployeeIds"] = [entry.employee_id for entry in entries]
        return data

    def _apply_children(self, session: Session, record: ReturnRecord, data: Mapping[str, Any]) -> None:
        raw_entries = data.get("receivedByEntries")
        if raw_entries is None:
            return
        try:
            entries = [ReceiverEntry.model_validate(snake_keys(item)) for item in raw_entries]
        except (ValidationError, AttributeError, TypeError) as exc:
            raise PayloadError(f"Invalid receivers for return {record.id}: {exc}") from exc
        self._replace_receivers(session, record.id, entries)
