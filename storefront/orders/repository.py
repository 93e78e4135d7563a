"""
Registre durable des commandes (table 'orders').
- OrderLedger: contrat create_pending / attach_session / transition / read.
- SupabaseOrderLedger: écritures via le client service-role.
- InMemoryOrderLedger: même contrat, protégé par un verrou (dev/tests).

Invariants garantis ici et non par l'appelant:
- le montant n'est écrit qu'à la création;
- le jeton de session n'est posé qu'une fois (UPDATE ... WHERE authority IS NULL);
- une transition est un UPDATE conditionnel unique (WHERE status = <attendu>),
  jamais une lecture suivie d'une écriture.
"""
import logging
import threading
from typing import Any, Dict, Optional, Protocol

from postgrest.exceptions import APIError

from .errors import AlreadyAttached, LedgerUnavailable, OrderNotFound, StaleState, TokenInUse
from .models import Order, OrderStatus, ensure_transition_allowed, new_order_id, utcnow

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
UNIQUE_VIOLATION = "23505"


class OrderLedger(Protocol):
    def create_pending(self, amount: int) -> Order: ...

    def attach_session(self, order_id: str, token: str) -> Order: ...

    def transition(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        *,
        reference_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Order: ...

    def read(self, order_id: str) -> Order: ...


def _is_unique_violation(e: APIError) -> bool:
    code = getattr(e, "code", None)
    if code is None and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return str(code) == UNIQUE_VIOLATION


def _final_fields(reference_id: Optional[str], failure_reason: Optional[str]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if reference_id is not None:
        fields["ref_id"] = str(reference_id)
    if failure_reason is not None:
        fields["failure_reason"] = failure_reason[:500]
    return fields


class SupabaseOrderLedger:
    def __init__(self, client, table: str = ORDERS_TABLE):
        self._client = client
        self._table = table

    def _orders(self):
        return self._client.table(self._table)

    def create_pending(self, amount: int) -> Order:
        """Insère une commande PENDING (montant figé, sans jeton) et la renvoie une fois écrite."""
        order = Order(id=new_order_id(), amount=amount)
        try:
            self._orders().insert(order.to_row()).execute()
        except Exception as e:
            logger.exception("orders.repository.create_pending failed amount=%s", amount)
            raise LedgerUnavailable("Erreur lors de l'enregistrement de la commande") from e
        return order

    def attach_session(self, order_id: str, token: str) -> Order:
        """
        Pose le jeton de session une seule fois.
        - Même jeton déjà posé: renvoie la commande (requête rejouée).
        - Autre jeton déjà posé: AlreadyAttached.
        - Jeton déjà rattaché à une autre commande (contrainte unique): TokenInUse.
        """
        try:
            res = (
                self._orders()
                .update({"authority": token, "updated_at": utcnow().isoformat()})
                .eq("id", order_id)
                .is_("authority", "null")
                .execute()
            )
        except APIError as e:
            if _is_unique_violation(e):
                logger.warning("orders.repository.attach_session jeton déjà utilisé order_id=%s", order_id)
                raise TokenInUse(order_id, token) from e
            logger.exception("orders.repository.attach_session failed order_id=%s", order_id)
            raise LedgerUnavailable("Erreur lors de la mise à jour de la commande") from e
        except Exception as e:
            logger.exception("orders.repository.attach_session failed order_id=%s", order_id)
            raise LedgerUnavailable("Erreur lors de la mise à jour de la commande") from e
        rows = res.data or []
        if rows:
            return Order.from_row(rows[0])
        current = self.read(order_id)
        if current.session_token == token:
            return current
        raise AlreadyAttached(order_id, current.session_token)

    def transition(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        *,
        reference_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Order:
        """
        Compare-and-set sur le statut: UPDATE orders SET status=<target> WHERE id=? AND status=<expected>.
        - 0 ligne touchée: OrderNotFound si la commande n'existe pas, sinon StaleState.
        """
        ensure_transition_allowed(expected, target)
        payload = {"status": target.value, "updated_at": utcnow().isoformat()}
        payload.update(_final_fields(reference_id, failure_reason))
        try:
            res = (
                self._orders()
                .update(payload)
                .eq("id", order_id)
                .eq("status", expected.value)
                .execute()
            )
        except Exception as e:
            logger.exception("orders.repository.transition failed order_id=%s %s->%s", order_id, expected.value, target.value)
            raise LedgerUnavailable("Erreur lors de la mise à jour de la commande") from e
        rows = res.data or []
        if rows:
            return Order.from_row(rows[0])
        current = self.read(order_id)
        raise StaleState(order_id, expected.value, current.status.value)

    def read(self, order_id: str) -> Order:
        if not order_id:
            raise OrderNotFound(order_id)
        try:
            res = (
                self._orders()
                .select("*")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.exception("orders.repository.read failed order_id=%s", order_id)
            raise LedgerUnavailable("Erreur lors de la lecture de la commande") from e
        rows = res.data or []
        if not rows:
            raise OrderNotFound(order_id)
        return Order.from_row(rows[0])


class InMemoryOrderLedger:
    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create_pending(self, amount: int) -> Order:
        order = Order(id=new_order_id(), amount=amount)
        with self._lock:
            self._orders[order.id] = order
        return order

    def attach_session(self, order_id: str, token: str) -> Order:
        with self._lock:
            current = self._get(order_id)
            owner = self._tokens.get(token)
            if owner is not None and owner != order_id:
                raise TokenInUse(order_id, token)
            if current.session_token is None:
                self._tokens[token] = order_id
                updated = current.model_copy(update={"session_token": token, "updated_at": utcnow()})
                self._orders[order_id] = updated
                return updated
        if current.session_token == token:
            return current
        raise AlreadyAttached(order_id, current.session_token)

    def transition(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        *,
        reference_id: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> Order:
        ensure_transition_allowed(expected, target)
        with self._lock:
            current = self._get(order_id)
            if current.status != expected:
                raise StaleState(order_id, expected.value, current.status.value)
            update: Dict[str, Any] = {"status": target, "updated_at": utcnow()}
            if reference_id is not None:
                update["reference_id"] = str(reference_id)
            if failure_reason is not None:
                update["failure_reason"] = failure_reason[:500]
            updated = current.model_copy(update=update)
            self._orders[order_id] = updated
            return updated

    def read(self, order_id: str) -> Order:
        with self._lock:
            return self._get(order_id)

    def _get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def __len__(self) -> int:
        return len(self._orders)
