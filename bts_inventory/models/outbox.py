from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import UTCDateTime, enum_column, utc_now


class OutboxOperation(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


class OutboxEntry(SQLModel, table=True):
    """
    One pending local change. The autoincrement id is the delivery order;
    the row is deleted only when the server acknowledges that id.
    """
    __tablename__ = "sync_outbox"

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: str
    entity_id: str = Field(index=True)
    operation: OutboxOperation = Field(sa_type=enum_column(OutboxOperation))
    payload: str
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    # Retry bookkeeping
    attempts: int = Field(default=0)
    last_error: Optional[str] = Field(default=None)
    next_retry_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
