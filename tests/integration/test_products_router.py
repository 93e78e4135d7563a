from fastapi.testclient import TestClient

from storefront.orders.dependencies import get_orchestrator
from storefront.orders.service import OrderOrchestrator
from tests.fakes import BrokenCatalog


def test_list_products(client):
    res = client.get("/api/products")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert [p["id"] for p in body["products"]] == ["free", "p1", "p2", "p3"]
    mouse = next(p for p in body["products"] if p["id"] == "p2")
    assert mouse == {
        "id": "p2",
        "name": "Wireless Mouse",
        "price": 450,
        "description": "",
        "imageUrl": "/images/mouse.jpg",
    }


def test_list_products_catalog_unavailable(app, ledger, gateway, settings):
    broken = OrderOrchestrator(catalog=BrokenCatalog(), ledger=ledger, gateway=gateway, settings=settings)
    app.dependency_overrides[get_orchestrator] = lambda: broken
    try:
        with TestClient(app) as c:
            res = c.get("/api/products")
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Catalog unavailable"}


def test_default_memory_backend_serves_bundled_catalog(app):
    # Sans surcharge: orchestrateur construit par le lifespan (STORE_BACKEND=memory)
    with TestClient(app) as c:
        res = c.get("/api/products")
    assert res.status_code == 200
    assert {p["id"] for p in res.json()["products"]} == {"p1", "p2", "p3"}
