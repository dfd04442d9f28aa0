from datetime import datetime
from enum import Enum

from sqlmodel import Field

from .base import SyncModel, UTCDateTime, enum_column, utc_now


class EmployeeRole(str, Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    EMPLOYEE = "employee"


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Employee(SyncModel, table=True):
    __tablename__ = "employees"

    full_name: str
    email: str = Field(index=True, unique=True)
    phone: str = Field(default="")
    department: str = Field(default="")

    # Stored as plain text; the enum only guards values on the Python side
    role: EmployeeRole = Field(default=EmployeeRole.EMPLOYEE, sa_type=enum_column(EmployeeRole))
    status: EmployeeStatus = Field(default=EmployeeStatus.ACTIVE, sa_type=enum_column(EmployeeStatus))

    # Never store the plain password
    password_hash: str = Field(default="")
    password_salt: str = Field(default="")

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    location: str = Field(default="")
    two_factor_enabled: bool = Field(default=False)
    email_notifications: bool = Field(default=False)
    low_stock_alerts: bool = Field(default=False)
    language: str = Field(default="English")


class EmployeeField(str, Enum):
    """Columns Employee.find_by accepts."""
    ID = "id"
    EMAIL = "email"
