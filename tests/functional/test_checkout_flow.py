from storefront.orders.models import OrderStatus
from tests.fakes import CALLBACK_URL


def _callback(client, order_id, token, status="OK"):
    return client.get("/api/payment/callback", params={"orderId": order_id, "Authority": token, "Status": status})


def test_browse_checkout_pay_and_poll(client, ledger, gateway):
    # 1) Le front charge le catalogue
    products = {p["id"]: p for p in client.get("/api/products").json()["products"]}
    assert products["p3"]["price"] == 780

    # 2) Checkout
    res = client.post("/api/orders/create", json={
        "items": [{"productId": "p3", "quantity": 2}, {"productId": "p2", "quantity": 1}],
        "callback_url": CALLBACK_URL + "?lang=en",
    })
    assert res.status_code == 200
    order_id = res.json()["orderId"]
    assert gateway.session_calls[0]["return_url"] == f"{CALLBACK_URL}?lang=en&orderId={order_id}"

    # 3) Retour prestataire avec le jeton de la session
    token = res.json()["paymentUrl"].rsplit("/", 1)[-1]
    paid = _callback(client, order_id, token)
    assert paid.json()["success"] is True

    # 4) Le front interroge le statut
    order = client.get(f"/api/orders/{order_id}").json()["order"]
    assert order["status"] == "COMPLETED"
    assert order["amount"] == 2 * 780 + 450
    assert order["refId"] == "201"
    assert gateway.verify_calls[0]["amount"] == order["amount"]


def test_cancel_then_late_success_callback_stays_failed(client, checkout, ledger, gateway):
    created = checkout()
    token = ledger.read(created["orderId"]).session_token

    assert _callback(client, created["orderId"], token, "NOK").json() == {"success": False, "message": "cancelled"}
    late = _callback(client, created["orderId"], token, "OK")

    assert late.status_code == 200
    assert late.json() == {"success": False, "message": "cancelled"}
    assert gateway.verify_calls == []
    assert ledger.read(created["orderId"]).status is OrderStatus.FAILED


def test_provider_outage_then_retry_completes(client, checkout, ledger, gateway):
    from storefront.orders.errors import GatewayUnavailable

    created = checkout()
    token = ledger.read(created["orderId"]).session_token
    gateway.verify_error = GatewayUnavailable("Payment gateway timeout")
    assert _callback(client, created["orderId"], token).status_code == 500

    gateway.verify_error = None
    retry = _callback(client, created["orderId"], token)
    assert retry.status_code == 200
    assert retry.json()["refId"] == "201"


def test_two_checkouts_are_independent(client, checkout, ledger):
    a = checkout([{"productId": "p1", "quantity": 1}])
    b = checkout([{"productId": "p2", "quantity": 4}])
    assert a["orderId"] != b["orderId"]
    assert a["paymentUrl"] != b["paymentUrl"]
    assert ledger.read(a["orderId"]).amount == 1000
    assert ledger.read(b["orderId"]).amount == 1800

    token_b = ledger.read(b["orderId"]).session_token
    # Jeton d'une autre commande: refusé
    res = _callback(client, a["orderId"], token_b)
    assert res.status_code == 400
    assert ledger.read(a["orderId"]).status is OrderStatus.PENDING
