import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from bts_inventory.config import AppConfig
from bts_inventory.data.local_store import LocalStore
from bts_inventory.errors import PayloadError
from bts_inventory.models.base import utc_now
from bts_inventory.models.registry import resolve_entity_type
from bts_inventory.models.wire import PushChange, PushRequest, PushResponse

logger = logging.getLogger("SyncManager")


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCED = "synced"
    ERROR = "error"


@dataclass(frozen=True)
class SyncReport:
    status: SyncState
    error: Optional[str] = None
    pushed: int = 0
    acked: int = 0
    conflicts: int = 0
    pulled: int = 0


class SyncManager:
    """
    Push-based sync with the remote authority.

    One cycle: read the due outbox batch, POST it in a single request, then
    apply acknowledgements, conflicts and server changes in one local
    transaction. Network and response errors reschedule the whole batch with
    backoff and come back as an ``error`` report, as do local database errors;
    none of them are raised.
    """

    def __init__(
        self,
        store: LocalStore,
        client: Optional[httpx.Client] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.config = config or AppConfig()
        self.clock = clock
        self._owns_client = client is None
        self.client = client or httpx.Client(
            base_url=self.config.sync_endpoint,
            timeout=self.config.sync_timeout_seconds,
        )
        # Single flight: overlapping triggers wait for the running cycle
        self._lock = threading.Lock()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def perform_sync(self) -> SyncReport:
        with self._lock:
            try:
                return self._run_cycle()
            except SQLAlchemyError as exc:
                logger.exception("Sync cycle aborted by a local database error")
                return SyncReport(SyncState.ERROR, error=f"Local database error: {exc}")

    def _run_cycle(self) -> SyncReport:
        now = self.clock()
        changes = self._read_batch(now)
        if changes is None:
            return SyncReport(SyncState.IDLE)
        if not changes:
            return SyncReport(SyncState.ERROR, error="Every due outbox entry is malformed")

        sent = {change.id: change for change in changes}
        request = PushRequest(client_id=self.store.meta.get_client_id(), changes=changes)

        try:
            response = self.client.post("/push", json=request.model_dump(mode="json", by_alias=True))
            response.raise_for_status()
            result = PushResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            return self._fail(list(sent), f"{type(exc).__name__}: {exc}", now)
        except ValueError as exc:
            return self._fail(list(sent), f"Malformed sync response: {exc}", now)

        try:
            with self.store.transaction() as session:
                acked = self._apply_acks(session, sent, result.acked_ids, now)
                conflicts = self._apply_conflicts(session, sent, result)
                pulled = self._apply_server_changes(session, result, now)
        except (PayloadError, SQLAlchemyError) as exc:
            logger.exception("Applying the sync response failed; batch rolled back")
            return self._fail(list(sent), f"Could not apply sync response: {exc}", now)

        self.store.meta.set_last_sync(now.isoformat())
        report = SyncReport(
            SyncState.SYNCED,
            pushed=len(sent),
            acked=acked,
            conflicts=conflicts,
            pulled=pulled,
        )
        logger.info(
            "Sync done: pushed=%s acked=%s conflicts=%s pulled=%s",
            report.pushed, report.acked, report.conflicts, report.pulled,
        )
        return report

    def _read_batch(self, now: datetime) -> Optional[List[PushChange]]:
        """
        Due entries as wire changes, or None when nothing is due.
        Entries whose payload cannot be decoded are rescheduled and left out.
        """
        outbox = self.store.outbox
        with self.store.transaction() as session:
            batch = outbox.due_batch(session, self.config.sync_batch_size, now)
            if not batch:
                return None

            changes = []
            held: Set[Tuple[str, str]] = set()
            for entry in batch:
                key = (entry.entity_type, entry.entity_id)
                if key in held:
                    # Waits behind an older entry of the same entity
                    continue
                try:
                    payload = outbox.decode(entry)
                except PayloadError as exc:
                    logger.warning("Outbox entry %s is malformed: %s", entry.id, exc)
                    outbox.mark_failed(session, [entry.id], str(exc), now)
                    held.add(key)
                    continue
                changes.append(PushChange(
                    id=entry.id,
                    entity_type=payload.entity_type.value,
                    entity_id=entry.entity_id,
                    operation=payload.operation,
                    data=payload.data,
                ))
            return changes

    def _apply_acks(self, session: Session, sent: Dict[int, PushChange], acked_ids: Sequence[int], now: datetime) -> int:
        acked = [entry_id for entry_id in dict.fromkeys(acked_ids) if entry_id in sent]
        ignored = len(acked_ids) - len(acked)
        if ignored:
            logger.debug("Ignoring %s acknowledgement(s) for entries outside this batch", ignored)

        self.store.outbox.acknowledge(session, acked)

        entities: Dict[Tuple[str, str], None] = {}
        for entry_id in acked:
            entities[(sent[entry_id].entity_type, sent[entry_id].entity_id)] = None

        for tag, entity_id in entities:
            entity_type = resolve_entity_type(tag)
            # A newer local write still queued keeps the record dirty
            if self.store.outbox.pending_for(session, entity_type, entity_id):
                continue
            self.store.repository(entity_type).mark_synced(session, entity_id, now)
        return len(acked)

    def _apply_conflicts(self, session: Session, sent: Dict[int, PushChange], result: PushResponse) -> int:
        marked = 0
        for item in result.conflicts:
            entity_type = resolve_entity_type(item.entity_type)
            if entity_type is None:
                logger.warning("Skipping conflict for unknown entity type %r", item.entity_type)
                continue

            latest = self.store.outbox.latest_id(session, entity_type, item.entity_id)
            if latest is None or latest not in sent:
                # Superseded by a write made after this batch was read
                logger.debug("Conflict on %s %s superseded locally", item.entity_type, item.entity_id)
                continue

            if self.store.outbox.mark_conflict(session, entity_type, item.entity_id):
                marked += 1
        if marked:
            logger.warning("%s record(s) in conflict with the server", marked)
        return marked

    def _apply_server_changes(self, session: Session, result: PushResponse, now: datetime) -> int:
        pulled = 0
        for change in result.server_changes:
            entity_type = resolve_entity_type(change.entity_type)
            if entity_type is None:
                logger.warning("Skipping server change for unknown entity type %r", change.entity_type)
                continue
            self.store.repository(entity_type).apply_remote(session, change.data, now)
            pulled += 1
        return pulled

    def _fail(self, ids: List[int], message: str, now: datetime) -> SyncReport:
        with self.store.transaction() as session:
            self.store.outbox.mark_failed(session, ids, message, now)
        logger.warning("Sync failed, %s entr(ies) rescheduled: %s", len(ids), message)
        return SyncReport(SyncState.ERROR, error=message, pushed=len(ids))
