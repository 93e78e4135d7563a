import os

# Avant tout import de storefront: pas de Redis ni de Supabase en tests
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ["STORE_BACKEND"] = "memory"

import pytest
from typing import Generator
from fastapi.testclient import TestClient

from storefront.catalog.repository import InMemoryCatalog
from storefront.orders.dependencies import get_orchestrator
from storefront.orders.models import Product
from storefront.orders.repository import InMemoryOrderLedger
from storefront.orders.service import OrderOrchestrator
from storefront.settings import StoreSettings
from tests.fakes import CALLBACK_URL, MERCHANT_ID, FakeGateway


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

@pytest.fixture
def settings() -> StoreSettings:
    return StoreSettings(merchant_id=MERCHANT_ID, store_backend="memory")

@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog([
        Product(id="p1", name="Mechanical Keyboard", price=1000),
        Product(id="p2", name="Wireless Mouse", price=450, imageUrl="/images/mouse.jpg"),
        Product(id="p3", name="USB-C Hub", price=780),
        Product(id="free", name="Sticker", price=0),
    ])

@pytest.fixture
def ledger() -> InMemoryOrderLedger:
    return InMemoryOrderLedger()

@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()

@pytest.fixture
def orchestrator(catalog, ledger, gateway, settings) -> OrderOrchestrator:
    return OrderOrchestrator(catalog=catalog, ledger=ledger, gateway=gateway, settings=settings)

@pytest.fixture(scope="session")
def app():
    from storefront.app import app as fastapi_app
    return fastapi_app

@pytest.fixture()
def client(app, orchestrator) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)

@pytest.fixture()
def checkout(client):
    """Crée une commande via l'API et renvoie le JSON de réponse."""
    def _checkout(items=None, callback_url: str = CALLBACK_URL):
        res = client.post("/api/orders/create", json={
            "items": items if items is not None else [{"productId": "p1", "quantity": 2}],
            "callback_url": callback_url,
        })
        assert res.status_code == 200, res.text
        return res.json()
    return _checkout
