import datetime as dt
from enum import Enum
from typing import Optional

from sqlmodel import Field

from .base import SyncModel, enum_column


class ValueCategory(str, Enum):
    LOW = "LV"
    MEDIUM = "MV"
    HIGH = "HV"


class ProductStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    RETURNED = "returned"


class Product(SyncModel, table=True):
    __tablename__ = "products"

    value_category: ValueCategory = Field(default=ValueCategory.LOW, sa_type=enum_column(ValueCategory))
    article: str
    date: dt.date = Field(default_factory=dt.date.today)
    description: str = Field(default="")

    # PAR control / property numbers come from the paper inventory cards
    par_control_number: str = Field(default="", index=True)
    property_number: str = Field(default="", index=True)

    unit: str = Field(default="")
    unit_value: float = Field(default=0.0)
    balance_per_card: int = Field(default=0)
    on_hand_per_count: int = Field(default=0)
    total: float = Field(default=0.0)
    remarks: str = Field(default="")
    location: str = Field(default="")
    assigned_to_employee_id: Optional[str] = Field(default=None)
    status: ProductStatus = Field(default=ProductStatus.AVAILABLE, sa_type=enum_column(ProductStatus))


class ProductField(str, Enum):
    ID = "id"
    PROPERTY_NUMBER = "property_number"
    PAR_CONTROL_NUMBER = "par_control_number"
