import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from bts_inventory.config import AppConfig
from bts_inventory.data.local_store import LocalStore
from bts_inventory.models.base import SyncStatus
from bts_inventory.services.sync_manager import SyncManager, SyncState


@pytest.fixture
def server(tmp_path):
    app = create_app(f"sqlite+aiosqlite:///{tmp_path / 'server.db'}")
    with TestClient(app, base_url="http://testserver/sync") as client:
        yield client


@pytest.fixture
def client_store(tmp_path):
    stores = []

    def open_store(name):
        store = LocalStore.open(str(tmp_path / f"{name}.db"))
        stores.append(store)
        return store

    yield open_store
    for store in stores:
        store.close()


def manager_for(store, server):
    return SyncManager(store, client=server, config=AppConfig())


def test_push_acknowledges_new_changes(server):
    response = server.post("/push", json={
        "clientId": "client-a",
        "changes": [{
            "id": 1,
            "entityType": "products",
            "entityId": "p-1",
            "operation": "upsert",
            "data": {"id": "p-1", "article": "Router", "lastModified": "2024-01-01T00:00:00"},
        }],
    })

    assert response.status_code == 200
    assert response.json() == {"ackedIds": [1], "conflicts": [], "serverChanges": []}


def test_changes_flow_between_two_clients(server, client_store, make_product, make_employee):
    store_a = client_store("a")
    store_b = client_store("b")
    product = store_a.products.add(make_product(article="Tablet"))

    report = manager_for(store_a, server).perform_sync()
    assert report.status == SyncState.SYNCED
    assert store_a.products.get(product.id).sync_status == SyncStatus.SYNCED

    # B has something of its own to push; the response carries A's product
    store_b.employees.add(make_employee())
    report = manager_for(store_b, server).perform_sync()

    assert report.pulled == 1
    pulled = store_b.products.get(product.id)
    assert pulled.article == "Tablet"
    assert pulled.sync_status == SyncStatus.SYNCED
    assert pulled.is_dirty is False


def test_older_write_from_another_client_is_a_conflict(server, client_store, make_product, make_employee):
    store_a = client_store("a")
    store_b = client_store("b")
    product = store_a.products.add(make_product(article="Tablet"))
    manager_for(store_a, server).perform_sync()
    store_b.employees.add(make_employee())
    manager_for(store_b, server).perform_sync()

    # A edits first but syncs last
    store_a.products.update(product.id, {"remarks": "edited on A"})
    store_b.products.update(product.id, {"remarks": "edited on B"})
    assert manager_for(store_b, server).perform_sync().acked == 1

    report = manager_for(store_a, server).perform_sync()

    assert report.conflicts == 1
    with store_a.transaction() as session:
        assert len(store_a.outbox.pending_for(session, store_a.products.entity_type, product.id)) == 1


def test_delete_propagates_as_tombstone(server, client_store, make_product, make_employee):
    store_a = client_store("a")
    store_b = client_store("b")
    product = store_a.products.add(make_product())
    manager_for(store_a, server).perform_sync()
    store_b.employees.add(make_employee())
    manager_for(store_b, server).perform_sync()
    assert store_b.products.get(product.id) is not None

    store_a.products.remove(product.id)
    assert manager_for(store_a, server).perform_sync().acked == 1

    store_b.employees.add(make_employee())
    manager_for(store_b, server).perform_sync()
    assert store_b.products.get(product.id) is None
