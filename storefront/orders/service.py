"""
Cas d'usage 'orders': orchestre catalogue, calcul du prix, registre et prestataire.

Checkout (create_order):
  1) panier non vide, URL de retour valide (InvalidRequest sinon)
  2) total calculé côté serveur (UnknownProduct / CatalogUnavailable propagées)
  3) commande PENDING dans le registre
  4) session chez le prestataire; en cas d'échec la commande reste PENDING sans
     jeton (commande orpheline, laissée à la réconciliation: le prestataire a pu
     créer la session malgré la réponse en erreur)
  5) jeton attaché à la commande, 6) URL de paiement renvoyée

Retour prestataire (handle_callback):
  - commande orpheline (sans jeton): le jeton du rappel lui est d'abord rattaché;
    un jeton déjà porté par une autre commande est refusé (400)
  - annulation: PENDING -> FAILED
  - sinon vérification avec le montant STOCKÉ, puis PENDING -> COMPLETED | FAILED
  - prestataire injoignable: la commande reste PENDING (réconciliation), erreur 500
  - StaleState (rappel rejoué ou concurrent): réponse idempotente depuis le statut stocké
"""
import logging
from enum import Enum
from typing import Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict

from storefront.catalog.repository import CatalogReader
from storefront.payments.gateway import PaymentGateway
from storefront.pricing import service as pricing
from storefront.settings import StoreSettings
from .errors import (
    AlreadyAttached,
    GatewayRequestFailed,
    GatewayUnavailable,
    InvalidRequest,
    StaleState,
)
from .models import CartLine, Order, OrderStatus
from .repository import OrderLedger

logger = logging.getLogger(__name__)

PROVIDER_STATUS_OK = "OK"
CANCELLED_REASON = "cancelled"


class CallbackOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


class CheckoutResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    payment_url: str
    amount: int


class CallbackResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: CallbackOutcome
    order: Order
    replayed: bool = False

    @property
    def success(self) -> bool:
        return self.outcome is CallbackOutcome.COMPLETED

    @property
    def reference_id(self) -> Optional[str]:
        return self.order.reference_id

    @property
    def reason(self) -> Optional[str]:
        return self.order.failure_reason


def with_order_marker(return_url: str, order_id: str) -> str:
    """Ajoute orderId à la query de l'URL de retour du client, avant un éventuel #fragment."""
    parts = urlsplit(return_url)
    query = f"{parts.query}&orderId={order_id}" if parts.query else f"orderId={order_id}"
    return urlunsplit(parts._replace(query=query))


def _outcome_from_stored(order: Order) -> CallbackOutcome:
    if order.status is OrderStatus.COMPLETED:
        return CallbackOutcome.COMPLETED
    if order.failure_reason == CANCELLED_REASON:
        return CallbackOutcome.CANCELLED
    return CallbackOutcome.DECLINED


class OrderOrchestrator:
    def __init__(
        self,
        *,
        catalog: CatalogReader,
        ledger: OrderLedger,
        gateway: PaymentGateway,
        settings: StoreSettings,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.gateway = gateway
        self.settings = settings

    # --- Checkout ---

    def create_order(self, lines: Sequence[CartLine], return_url: str) -> CheckoutResult:
        if not lines or not (return_url or "").strip():
            raise InvalidRequest("Cart items and callback URL are required.")
        return_url = return_url.strip()
        if not return_url.startswith(("http://", "https://")):
            raise InvalidRequest("callback_url invalide")

        priced = pricing.compute_total(list(lines), self.catalog)
        if priced.amount <= 0:
            raise InvalidRequest("Le montant de la commande doit être positif")

        order = self.ledger.create_pending(priced.amount)
        logger.info("orders.create order_id=%s amount=%s items=%s", order.id, order.amount, pricing.summarize(priced))

        try:
            session = self.gateway.request_session(
                amount=order.amount,
                return_url=with_order_marker(return_url, order.id),
                merchant_id=self.settings.merchant_id,
                description=f"{self.settings.description_prefix} - {order.id}",
            )
        except GatewayUnavailable:
            logger.warning("orders.create orphan order_id=%s (prestataire injoignable)", order.id)
            raise
        if not session.success or not session.token or not session.redirect_url:
            logger.warning("orders.create orphan order_id=%s provider_code=%s", order.id, session.provider_code)
            raise GatewayRequestFailed("Failed to get payment URL from payment gateway")

        try:
            self.ledger.attach_session(order.id, session.token)
        except AlreadyAttached as e:
            logger.error("orders.create order_id=%s porte déjà un autre jeton", order.id)
            raise GatewayRequestFailed("Conflit de session de paiement") from e
        logger.info("orders.create session attachée order_id=%s", order.id)
        return CheckoutResult(order_id=order.id, payment_url=session.redirect_url, amount=order.amount)

    # --- Retour prestataire ---

    def handle_callback(self, order_id: str, session_token: str, provider_status: str) -> CallbackResult:
        if not order_id or not session_token or not provider_status:
            raise InvalidRequest("Invalid callback parameters")

        order = self.ledger.read(order_id)
        if order.session_token and order.session_token != session_token:
            logger.warning("orders.callback jeton inattendu order_id=%s", order_id)
            raise InvalidRequest("Invalid callback parameters")

        if order.status.is_terminal:
            logger.info("orders.callback rejoué order_id=%s status=%s", order_id, order.status.value)
            return CallbackResult(outcome=_outcome_from_stored(order), order=order, replayed=True)

        if order.session_token is None:
            # Commande orpheline: le jeton du rappel lui est rattaché avant toute vérification
            try:
                order = self.ledger.attach_session(order_id, session_token)
            except AlreadyAttached as e:
                logger.warning("orders.callback jeton refusé pour la commande orpheline order_id=%s (%s)", order_id, e.code)
                raise InvalidRequest("Invalid callback parameters") from e

        if provider_status != PROVIDER_STATUS_OK:
            return self._finalize(order_id, OrderStatus.FAILED, CallbackOutcome.CANCELLED, failure_reason=CANCELLED_REASON)

        # Montant et jeton issus du registre
        try:
            verification = self.gateway.verify(
                amount=order.amount,
                session_token=order.session_token,
                merchant_id=self.settings.merchant_id,
            )
        except GatewayUnavailable:
            logger.warning("orders.callback order_id=%s laissée PENDING (prestataire injoignable)", order_id)
            raise

        if verification.success:
            return self._finalize(
                order_id, OrderStatus.COMPLETED, CallbackOutcome.COMPLETED, reference_id=verification.reference_id
            )
        return self._finalize(
            order_id, OrderStatus.FAILED, CallbackOutcome.DECLINED,
            failure_reason=verification.reason or "Payment verification failed",
        )

    def _finalize(
        self,
        order_id: str,
        target: OrderStatus,
        outcome: CallbackOutcome,
        *,
        reference_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> CallbackResult:
        try:
            order = self.ledger.transition(
                order_id, OrderStatus.PENDING, target,
                reference_id=reference_id, failure_reason=failure_reason,
            )
        except StaleState as e:
            # Déjà finalisée par un autre rappel: on renvoie ce qui est stocké
            stored = self.ledger.read(order_id)
            logger.warning("orders.callback concurrent order_id=%s stored=%s", order_id, e.current)
            return CallbackResult(outcome=_outcome_from_stored(stored), order=stored, replayed=True)
        logger.info("orders.callback order_id=%s -> %s", order_id, target.value)
        return CallbackResult(outcome=outcome, order=order)

    def get_order(self, order_id: str) -> Order:
        return self.ledger.read(order_id)

    def list_products(self):
        return self.catalog.list_all()
