import datetime as dt

import pytest
from sqlmodel import col, select

from bts_inventory.data.local_store import LocalStore
from bts_inventory.models.base import new_id
from bts_inventory.models.employee import Employee
from bts_inventory.models.outbox import OutboxEntry
from bts_inventory.models.product import Product
from bts_inventory.models.return_record import ReturnRecord


@pytest.fixture
def store(tmp_path):
    store = LocalStore.open(str(tmp_path / "inventory.db"))
    yield store
    store.close()


@pytest.fixture
def make_employee():
    def factory(**overrides) -> Employee:
        fields = {"full_name": "Ana Reyes", "email": f"{new_id()[:8]}@bts.local", "department": "Supply"}
        fields.update(overrides)
        return Employee(**fields)
    return factory


@pytest.fixture
def make_product():
    def factory(**overrides) -> Product:
        fields = {
            "article": "Laptop",
            "date": dt.date(2024, 3, 1),
            "property_number": f"PN-{new_id()[:6]}",
            "unit": "pc",
            "unit_value": 45000.0,
        }
        fields.update(overrides)
        return Product(**fields)
    return factory


@pytest.fixture
def make_return():
    def factory(**overrides) -> ReturnRecord:
        fields = {
            "rrsp_number": f"RRSP-{new_id()[:6]}",
            "product_id": new_id(),
            "returned_by_employee_id": new_id(),
            "return_date": dt.date(2024, 5, 2),
        }
        fields.update(overrides)
        return ReturnRecord(**fields)
    return factory


@pytest.fixture
def outbox_entries(store):
    def entries():
        with store.transaction() as session:
            return list(session.exec(select(OutboxEntry).order_by(col(OutboxEntry.id))).all())
    return entries


@pytest.fixture
def raw_row(store):
    """Fetches a row by primary key, soft-deleted or not."""
    def fetch(model, key):
        with store.transaction() as session:
            return session.get(model, key)
    return fetch
