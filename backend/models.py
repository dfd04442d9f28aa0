from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from bts_inventory.models.base import UTCDateTime


class ServerRecord(SQLModel, table=True):
    """Latest accepted snapshot of one entity, as sent by the client that wrote it."""
    __tablename__ = "server_records"

    entity_type: str = Field(primary_key=True)
    entity_id: str = Field(primary_key=True)
    data: str  # camelCase JSON snapshot
    last_modified: datetime = Field(sa_type=UTCDateTime)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    # Global change counter; clients pull everything above their cursor
    revision: int = Field(index=True)
    origin_client_id: Optional[str] = Field(default=None)


class ClientCursor(SQLModel, table=True):
    __tablename__ = "client_cursors"

    client_id: str = Field(primary_key=True)
    revision: int = Field(default=0)
