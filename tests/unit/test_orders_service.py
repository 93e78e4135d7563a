import pytest

from storefront.orders.errors import (
    GatewayRequestFailed,
    GatewayUnavailable,
    InvalidRequest,
    OrderNotFound,
    UnknownProduct,
)
from storefront.orders.models import CartLine, OrderStatus
from storefront.orders.service import CallbackOutcome, with_order_marker
from storefront.payments.gateway import PaymentSessionResult, VerificationResult
from tests.fakes import CALLBACK_URL, MERCHANT_ID


def _lines(*pairs):
    return [CartLine(product_id=pid, quantity=qty) for pid, qty in pairs]


def _checkout(orchestrator, *pairs):
    return orchestrator.create_order(_lines(*(pairs or (("p1", 2),))), CALLBACK_URL)


# --- Checkout ---

def test_create_order_prices_server_side_and_attaches_session(orchestrator, ledger, gateway):
    result = _checkout(orchestrator, ("p1", 2))

    assert result.amount == 2000
    assert result.payment_url.startswith("https://sandbox.zarinpal.com/pg/StartPay/")
    order = ledger.read(result.order_id)
    assert order.status is OrderStatus.PENDING
    assert order.amount == 2000
    assert result.payment_url.endswith(order.session_token)
    call = gateway.session_calls[0]
    assert call["amount"] == 2000
    assert call["merchant_id"] == MERCHANT_ID
    assert call["return_url"] == f"{CALLBACK_URL}?orderId={result.order_id}"
    assert result.order_id in call["description"]


def test_create_order_unknown_product_creates_nothing(orchestrator, ledger, gateway):
    with pytest.raises(UnknownProduct):
        _checkout(orchestrator, ("p1", 1), ("ghost", 1))
    assert len(ledger) == 0
    assert gateway.session_calls == []


def test_create_order_requires_lines_and_url(orchestrator, ledger):
    with pytest.raises(InvalidRequest):
        orchestrator.create_order([], CALLBACK_URL)
    with pytest.raises(InvalidRequest):
        orchestrator.create_order(_lines(("p1", 1)), "   ")
    with pytest.raises(InvalidRequest):
        orchestrator.create_order(_lines(("p1", 1)), "javascript:alert(1)")
    assert len(ledger) == 0


def test_create_order_zero_total_is_rejected(orchestrator, ledger, gateway):
    with pytest.raises(InvalidRequest):
        _checkout(orchestrator, ("free", 3))
    assert len(ledger) == 0
    assert gateway.session_calls == []


def test_create_order_provider_refusal_leaves_orphan_pending(orchestrator, ledger, gateway):
    gateway.session_failure = PaymentSessionResult(success=False, error="merchant invalid", provider_code=-11)
    with pytest.raises(GatewayRequestFailed) as exc:
        _checkout(orchestrator)
    assert exc.value.message == "Failed to get payment URL from payment gateway"
    assert len(ledger) == 1
    (order,) = ledger._orders.values()
    assert order.status is OrderStatus.PENDING
    assert order.session_token is None


def test_create_order_provider_unreachable_propagates(orchestrator, ledger, gateway):
    gateway.session_error = GatewayUnavailable("Payment gateway timeout")
    with pytest.raises(GatewayUnavailable):
        _checkout(orchestrator)
    assert len(ledger) == 1


def test_return_url_marker_respects_existing_query():
    assert with_order_marker("https://s.test/cb", "ORDER_1") == "https://s.test/cb?orderId=ORDER_1"
    assert with_order_marker("https://s.test/cb?lang=fa", "ORDER_1") == "https://s.test/cb?lang=fa&orderId=ORDER_1"
    assert with_order_marker("https://s.test/cb#/done", "ORDER_1") == "https://s.test/cb?orderId=ORDER_1#/done"
    assert with_order_marker("https://s.test/cb?lang=fa#top", "ORDER_1") == "https://s.test/cb?lang=fa&orderId=ORDER_1#top"


# --- Retour prestataire ---

def _pending(orchestrator, ledger):
    result = _checkout(orchestrator)
    return ledger.read(result.order_id)


def test_callback_success_completes_order(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    result = orchestrator.handle_callback(order.id, order.session_token, "OK")

    assert result.success
    assert result.outcome is CallbackOutcome.COMPLETED
    assert result.reference_id == "201"
    assert result.replayed is False
    stored = ledger.read(order.id)
    assert stored.status is OrderStatus.COMPLETED
    assert stored.amount == order.amount
    assert gateway.verify_calls == [
        {"amount": 2000, "session_token": order.session_token, "merchant_id": MERCHANT_ID}
    ]


def test_callback_cancelled_does_not_verify(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    result = orchestrator.handle_callback(order.id, order.session_token, "NOK")

    assert result.outcome is CallbackOutcome.CANCELLED
    assert not result.success
    assert gateway.verify_calls == []
    stored = ledger.read(order.id)
    assert stored.status is OrderStatus.FAILED
    assert stored.failure_reason == "cancelled"


def test_callback_declined_marks_failed(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    gateway.verify_result = VerificationResult(success=False, reason="Session is not valid", provider_code=-51)

    result = orchestrator.handle_callback(order.id, order.session_token, "OK")

    assert result.outcome is CallbackOutcome.DECLINED
    assert result.reason == "Session is not valid"
    assert ledger.read(order.id).status is OrderStatus.FAILED


def test_callback_replay_after_completion_is_idempotent(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    first = orchestrator.handle_callback(order.id, order.session_token, "OK")
    second = orchestrator.handle_callback(order.id, order.session_token, "OK")

    assert second.success and second.replayed
    assert second.reference_id == first.reference_id
    assert len(gateway.verify_calls) == 1


def test_cancel_after_completion_keeps_completed(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    orchestrator.handle_callback(order.id, order.session_token, "OK")
    late = orchestrator.handle_callback(order.id, order.session_token, "NOK")

    assert late.outcome is CallbackOutcome.COMPLETED
    assert ledger.read(order.id).status is OrderStatus.COMPLETED


def test_callback_gateway_unavailable_keeps_pending_then_recovers(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    gateway.verify_error = GatewayUnavailable("Payment gateway timeout")
    with pytest.raises(GatewayUnavailable):
        orchestrator.handle_callback(order.id, order.session_token, "OK")
    assert ledger.read(order.id).status is OrderStatus.PENDING

    gateway.verify_error = None
    result = orchestrator.handle_callback(order.id, order.session_token, "OK")
    assert result.success
    assert ledger.read(order.id).status is OrderStatus.COMPLETED


def test_callback_token_mismatch_is_rejected(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)
    with pytest.raises(InvalidRequest):
        orchestrator.handle_callback(order.id, "A-forged", "OK")
    assert gateway.verify_calls == []
    assert ledger.read(order.id).status is OrderStatus.PENDING


@pytest.mark.parametrize("params", [
    ("", "A1", "OK"),
    ("ORDER_1", "", "OK"),
    ("ORDER_1", "A1", ""),
])
def test_callback_missing_parameters(orchestrator, params):
    with pytest.raises(InvalidRequest):
        orchestrator.handle_callback(*params)


def test_callback_unknown_order(orchestrator):
    with pytest.raises(OrderNotFound):
        orchestrator.handle_callback("ORDER_missing", "A1", "OK")


def test_callback_orphan_order_uses_callback_token(orchestrator, ledger, gateway):
    orphan = ledger.create_pending(780)
    result = orchestrator.handle_callback(orphan.id, "A-late", "OK")

    assert result.success
    assert gateway.verify_calls[0]["session_token"] == "A-late"
    assert gateway.verify_calls[0]["amount"] == 780
    assert ledger.read(orphan.id).session_token == "A-late"


def test_payment_token_cannot_complete_a_second_orphan_order(orchestrator, ledger, gateway):
    paid = _pending(orchestrator, ledger)
    orchestrator.handle_callback(paid.id, paid.session_token, "OK")
    orphan = ledger.create_pending(paid.amount)
    # Le prestataire répondrait « déjà vérifié » pour ce jeton
    gateway.verify_result = VerificationResult(success=True, reference_id="201", provider_code=101)

    with pytest.raises(InvalidRequest):
        orchestrator.handle_callback(orphan.id, paid.session_token, "OK")

    stored = ledger.read(orphan.id)
    assert stored.status is OrderStatus.PENDING
    assert stored.session_token is None
    assert len(gateway.verify_calls) == 1


def test_orphan_cancel_requires_unused_token(orchestrator, ledger, gateway):
    paid = _pending(orchestrator, ledger)
    orphan = ledger.create_pending(780)

    with pytest.raises(InvalidRequest):
        orchestrator.handle_callback(orphan.id, paid.session_token, "NOK")
    assert ledger.read(orphan.id).status is OrderStatus.PENDING

    result = orchestrator.handle_callback(orphan.id, "A-own", "NOK")
    assert result.outcome is CallbackOutcome.CANCELLED
    assert ledger.read(orphan.id).session_token == "A-own"


def test_concurrent_callback_returns_stored_outcome(orchestrator, ledger, gateway):
    order = _pending(orchestrator, ledger)

    # Un autre rappel finalise la commande pendant notre vérification
    def _race(**kwargs):
        ledger.transition(order.id, OrderStatus.PENDING, OrderStatus.COMPLETED, reference_id="777")

    gateway.on_verify = _race
    result = orchestrator.handle_callback(order.id, order.session_token, "OK")

    assert result.replayed is True
    assert result.outcome is CallbackOutcome.COMPLETED
    assert result.reference_id == "777"


def test_verification_uses_stored_amount(orchestrator, ledger, gateway, catalog):
    order = _pending(orchestrator, ledger)
    # Le prix catalogue change après la création: la commande garde son montant
    catalog._products["p1"] = catalog.get("p1").model_copy(update={"price": 5})
    orchestrator.handle_callback(order.id, order.session_token, "OK")
    assert gateway.verify_calls[0]["amount"] == 2000
    assert ledger.read(order.id).amount == 2000


def test_list_products_and_get_order(orchestrator, ledger):
    assert [p.id for p in orchestrator.list_products()] == ["free", "p1", "p2", "p3"]
    order = _pending(orchestrator, ledger)
    assert orchestrator.get_order(order.id) == ledger.read(order.id)
