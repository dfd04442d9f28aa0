import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetimes on the Python side.

    SQLite has no timezone column type, so values are written as UTC wall
    time and come back with tzinfo=UTC attached.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def enum_column(enum_type):
    """Text column holding the enum's values (not its member names)."""
    return SAEnum(
        enum_type,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        create_constraint=False,
        length=32,
    )


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"


class EntityType(str, Enum):
    """Entity kinds as they appear in the outbox and on the wire."""
    EMPLOYEES = "employees"
    PRODUCTS = "products"
    RETURNS = "returns"
    ACTIVITY_LOGS = "activity_logs"
    SETTINGS = "settings"


# Bookkeeping that never leaves the device
LOCAL_ONLY_COLUMNS = frozenset({"sync_status", "is_dirty", "last_synced_at"})
SYNC_COLUMNS = LOCAL_ONLY_COLUMNS | {"last_modified", "deleted_at"}


class SyncModel(SQLModel):
    """
    Base class for every synchronised entity table.

    Carries the UUID key plus the sync metadata present on every row:
    status, dirty flag, modification/sync timestamps and the soft-delete
    tombstone. Rows are never physically deleted.
    """
    id: str = Field(default_factory=new_id, primary_key=True)

    sync_status: SyncStatus = Field(default=SyncStatus.PENDING, sa_type=enum_column(SyncStatus))
    is_dirty: bool = Field(default=True)
    last_modified: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    last_synced_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    # Tombstone for soft delete
    deleted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    def mark_pending(self, now: datetime) -> None:
        """Stamp a local write. Also clears a previous conflict."""
        self.sync_status = SyncStatus.PENDING
        self.is_dirty = True
        self.last_modified = now

    def mark_synced(self, now: datetime) -> None:
        self.sync_status = SyncStatus.SYNCED
        self.is_dirty = False
        self.last_synced_at = now
