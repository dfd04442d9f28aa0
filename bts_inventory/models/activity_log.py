from datetime import datetime
from enum import Enum

from sqlmodel import Field

from .base import SyncModel, UTCDateTime, enum_column, utc_now


class ActivityStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActivityLog(SyncModel, table=True):
    __tablename__ = "activity_logs"

    action: str
    # employee | product | return | sync
    entity_type: str
    entity_id: str
    performed_by_employee_id: str
    timestamp: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    details: str = Field(default="")
    status: ActivityStatus = Field(default=ActivityStatus.SUCCESS, sa_type=enum_column(ActivityStatus))
    ip_address: str = Field(default="offline")


class ActivityLogField(str, Enum):
    ID = "id"
    ENTITY_ID = "entity_id"
    PERFORMED_BY_EMPLOYEE_ID = "performed_by_employee_id"
