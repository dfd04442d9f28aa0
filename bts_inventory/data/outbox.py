"""
Durable queue of pending local changes (table sync_outbox).

Entries are appended by the repositories inside the same transaction as the
record write and removed only when the server acknowledges their id.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import exists, func, or_
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from bts_inventory.data.db_context import record_change
from bts_inventory.data.payloads import OutboxPayload, decode_payload, encode_payload
from bts_inventory.models.base import EntityType, SyncStatus, utc_now
from bts_inventory.models.outbox import OutboxEntry, OutboxOperation
from bts_inventory.models.registry import ENTITY_MODELS

logger = logging.getLogger("Outbox")

RETRY_BASE_SECONDS = 30
RETRY_CAP_SECONDS = 300

CONFLICT_ERROR = "conflict: the server holds a newer version of this record"


def retry_delay(attempts: int) -> timedelta:
    return timedelta(seconds=min(RETRY_CAP_SECONDS, RETRY_BASE_SECONDS * attempts))


class OutboxQueue:

    def enqueue(
        self,
        session: Session,
        entity_type: EntityType,
        entity_id: str,
        operation: OutboxOperation,
        data: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> OutboxEntry:
        entry = OutboxEntry(
            entity_type=entity_type.value,
            entity_id=entity_id,
            operation=operation,
            payload=encode_payload(entity_type, operation, data),
            created_at=now or utc_now(),
        )
        session.add(entry)
        session.flush()
        return entry

    def due_batch(self, session: Session, limit: int, now: datetime) -> List[OutboxEntry]:
        """
        Oldest entries first, skipping those still waiting out their backoff.
        An entry is also held back while an older entry for the same entity
        is backing off, so each entity's changes leave in creation order.
        """
        earlier = aliased(OutboxEntry)
        older_backing_off = exists().where(
            earlier.entity_type == OutboxEntry.entity_type,
            earlier.entity_id == OutboxEntry.entity_id,
            earlier.id < OutboxEntry.id,
            earlier.next_retry_at > now,
        )
        statement = (
            select(OutboxEntry)
            .where(or_(col(OutboxEntry.next_retry_at).is_(None), col(OutboxEntry.next_retry_at) <= now))
            .where(~older_backing_off)
            .order_by(col(OutboxEntry.id))
            .limit(limit)
        )
        return list(session.exec(statement).all())

    def acknowledge(self, session: Session, ids: Iterable[int]) -> int:
        entries = self._by_ids(session, ids)
        for entry in entries:
            session.delete(entry)
        session.flush()
        return len(entries)

    def mark_failed(self, session: Session, ids: Iterable[int], error: str, now: datetime) -> None:
        for entry in self._by_ids(session, ids):
            entry.attempts += 1
            entry.last_error = error
            entry.next_retry_at = now + retry_delay(entry.attempts)
            session.add(entry)
        session.flush()

    def mark_conflict(self, session: Session, entity_type: EntityType, entity_id: str) -> bool:
        """
        Flags the record as conflicted. Its queued entries stay where they
        are and go out again with the next due batch.
        Returns False when the record does not exist locally.
        """
        model = ENTITY_MODELS[entity_type]
        record = session.get(model, entity_id)
        for entry in self.pending_for(session, entity_type, entity_id):
            entry.last_error = CONFLICT_ERROR
            session.add(entry)

        if record is None:
            logger.warning("Conflict reported for unknown %s %s", entity_type.value, entity_id)
            session.flush()
            return False

        record.sync_status = SyncStatus.CONFLICT
        session.add(record)
        session.flush()
        record_change(session, model.__tablename__, [entity_id])
        return True

    def pending_for(self, session: Session, entity_type: EntityType, entity_id: str) -> List[OutboxEntry]:
        statement = (
            select(OutboxEntry)
            .where(OutboxEntry.entity_type == entity_type.value, OutboxEntry.entity_id == entity_id)
            .order_by(col(OutboxEntry.id))
        )
        return list(session.exec(statement).all())

    def latest_id(self, session: Session, entity_type: EntityType, entity_id: str) -> Optional[int]:
        statement = select(func.max(OutboxEntry.id)).where(
            OutboxEntry.entity_type == entity_type.value, OutboxEntry.entity_id == entity_id
        )
        return session.exec(statement).one()

    def count(self, session: Session) -> int:
        return session.exec(select(func.count()).select_from(OutboxEntry)).one()

    def decode(self, entry: OutboxEntry) -> OutboxPayload:
        return decode_payload(entry.payload)

    def _by_ids(self, session: Session, ids: Iterable[int]) -> List[OutboxEntry]:
        ids = list(ids)
        if not ids:
            return []
        statement = select(OutboxEntry).where(col(OutboxEntry.id).in_(ids)).order_by(col(OutboxEntry.id))
        return list(session.exec(statement).all())
