import datetime as dt
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from .base import SyncModel, UTCDateTime, enum_column, utc_now
from .employee import EmployeeRole


class ReturnCondition(str, Enum):
    FUNCTIONAL = "functional"
    DESTROYED = "destroyed"
    FOR_DISPOSAL = "for disposal"
    NEED_REPAIR = "need repair"
    DAMAGED = "damaged"


class ReturnStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReturnRecord(SyncModel, table=True):
    """
    Receipt of returned property (RRSP). Owns its receiver entries, which
    live in return_receivers and are rewritten together with this row.
    """
    __tablename__ = "returns"

    rrsp_number: str = Field(index=True)
    product_id: str
    return_date: dt.date = Field(default_factory=dt.date.today)
    quantity: int = Field(default=1)
    condition: ReturnCondition = Field(default=ReturnCondition.FUNCTIONAL, sa_type=enum_column(ReturnCondition))
    remarks: str = Field(default="")
    returned_by_employee_id: str
    returned_by_position: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, sa_type=enum_column(EmployeeRole))
    received_date: Optional[dt.date] = Field(default=None)
    location: str = Field(default="")
    created_at: dt.datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    status: ReturnStatus = Field(default=ReturnStatus.PENDING, sa_type=enum_column(ReturnStatus))
    processed_by_employee_id: Optional[str] = Field(default=None)
    processed_date: Optional[dt.date] = Field(default=None)
    processing_notes: Optional[str] = Field(default=None)


class ReceiverEntry(SQLModel):
    """One employee who signed for a return; value object used by callers."""
    employee_id: str
    position: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE)
    received_date: Optional[dt.date] = None
    location: str = ""


class ReturnReceiver(SQLModel, table=True):
    __tablename__ = "return_receivers"

    return_id: str = Field(primary_key=True, foreign_key="returns.id")
    employee_id: str = Field(primary_key=True)
    position: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, sa_type=enum_column(EmployeeRole))
    received_date: Optional[dt.date] = Field(default=None)
    location: str = Field(default="")

    def to_entry(self) -> ReceiverEntry:
        return ReceiverEntry(
            employee_id=self.employee_id,
            position=self.position,
            received_date=self.received_date,
            location=self.location,
        )


class ReturnField(str, Enum):
    ID = "id"
    RRSP_NUMBER = "rrsp_number"
    PRODUCT_ID = "product_id"
