import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from backend.database import build_engine, get_session, init_db
from backend.models import ClientCursor, ServerRecord
from bts_inventory.data.payloads import parse_timestamp
from bts_inventory.errors import PayloadError
from bts_inventory.models.base import utc_now
from bts_inventory.models.outbox import OutboxOperation
from bts_inventory.models.registry import resolve_entity_type
from bts_inventory.models.wire import ConflictItem, PushChange, PushRequest, PushResponse, ServerChange

logger = logging.getLogger("SyncServer")

ANONYMOUS_CLIENT = "anonymous"

router = APIRouter()


@router.get("/")
async def root():
    return {"status": "online", "time": utc_now().isoformat()}


@router.post("/sync/push", response_model=PushResponse)
async def push(body: PushRequest, session: AsyncSession = Depends(get_session)) -> PushResponse:
    """
    Accepts a batch of client changes in outbox order.

    A change is a conflict when another client already stored a newer
    version of the same entity. Everything else is acknowledged. The
    response also carries the changes other clients made since this
    client's last push.
    """
    client_id = body.client_id or ANONYMOUS_CLIENT
    acked_ids: List[int] = []
    conflicts: List[ConflictItem] = []

    try:
        cursor = await session.get(ClientCursor, client_id)
        since = cursor.revision if cursor else 0
        revision = (await session.exec(select(func.max(ServerRecord.revision)))).one() or 0

        for change in body.changes:
            if resolve_entity_type(change.entity_type) is None:
                logger.warning("Dropping change %s for unknown entity type %r", change.id, change.entity_type)
                acked_ids.append(change.id)
                continue

            existing = await session.get(ServerRecord, (change.entity_type, change.entity_id))
            incoming_modified = _modified_at(change)
            if (
                existing is not None
                and existing.origin_client_id != client_id
                and existing.last_modified > incoming_modified
            ):
                conflicts.append(ConflictItem(entity_type=change.entity_type, entity_id=change.entity_id))
                continue

            if change.operation == OutboxOperation.DELETE:
                if existing is None:
                    # Never seen here; nothing to tombstone
                    acked_ids.append(change.id)
                    continue
                data = json.loads(existing.data)
                data["deletedAt"] = incoming_modified.isoformat()
                data["lastModified"] = incoming_modified.isoformat()
                record = existing
                record.deleted_at = incoming_modified
            else:
                data = change.data
                record = existing or ServerRecord(
                    entity_type=change.entity_type,
                    entity_id=change.entity_id,
                    data="",
                    last_modified=incoming_modified,
                    revision=0,
                )
                record.deleted_at = parse_timestamp(data.get("deletedAt"))

            revision += 1
            record.data = json.dumps(data)
            record.last_modified = incoming_modified
            record.revision = revision
            record.origin_client_id = client_id
            session.add(record)
            acked_ids.append(change.id)

        statement = (
            select(ServerRecord)
            .where(col(ServerRecord.revision) > since)
            .where(col(ServerRecord.origin_client_id) != client_id)
            .order_by(col(ServerRecord.revision))
        )
        server_changes = [
            ServerChange(entity_type=record.entity_type, data=json.loads(record.data))
            for record in (await session.exec(statement)).all()
        ]

        cursor = cursor or ClientCursor(client_id=client_id)
        cursor.revision = revision
        session.add(cursor)
        await session.commit()
    except PayloadError as e:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Push from %s failed: %s", client_id, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    logger.info(
        "Push from %s: %s acked, %s conflicts, %s server changes",
        client_id, len(acked_ids), len(conflicts), len(server_changes),
    )
    return PushResponse(acked_ids=acked_ids, conflicts=conflicts, server_changes=server_changes)


def _modified_at(change: PushChange) -> datetime:
    key = "deletedAt" if change.operation == OutboxOperation.DELETE else "lastModified"
    return parse_timestamp(change.data.get(key)) or utc_now()


def create_app(database_url: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(database_url)
        await init_db(engine)
        app.state.sessions = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        yield
        await engine.dispose()

    app = FastAPI(title="BTS Inventory - Sync Server", lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
