"""
Taxonomie des erreurs du cœur commandes/paiement.
- Chaque erreur porte un status_code HTTP et un code court (stable, utile aux logs).
- Les gardes de concurrence (AlreadyAttached, StaleState) sont rattrapées par
  l'orchestrateur et ne remontent pas jusqu'au client.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class InvalidRequest(StorefrontError):
    status_code = 400
    code = "invalid_request"


class UnknownProduct(StorefrontError):
    status_code = 404
    code = "unknown_product"

    def __init__(self, product_id: str):
        super().__init__(f"Product with ID {product_id} not found.")
        self.product_id = product_id


class OrderNotFound(StorefrontError):
    status_code = 404
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class CatalogUnavailable(StorefrontError):
    status_code = 500
    code = "catalog_unavailable"


class LedgerUnavailable(StorefrontError):
    status_code = 500
    code = "ledger_unavailable"


class GatewayUnavailable(StorefrontError):
    """Timeout, 5xx ou réponse illisible du prestataire (ce n'est pas un refus de paiement)."""
    status_code = 500
    code = "gateway_unavailable"


class GatewayRequestFailed(StorefrontError):
    status_code = 500
    code = "gateway_request_failed"


class AlreadyAttached(StorefrontError):
    status_code = 409
    code = "already_attached"

    def __init__(self, order_id: str, current_token: Optional[str] = None):
        super().__init__(f"Session déjà attachée à la commande {order_id}")
        self.order_id = order_id
        self.current_token = current_token


class StaleState(StorefrontError):
    status_code = 409
    code = "stale_state"

    def __init__(self, order_id: str, expected: str, current: str):
        super().__init__(f"Commande {order_id}: statut {current}, attendu {expected}")
        self.order_id = order_id
        self.expected = expected
        self.current = current


class InvalidTransition(StorefrontError):
    code = "invalid_transition"

    def __init__(self, source: str, target: str):
        super().__init__(f"Transition interdite {source} -> {target}")
        self.source = source
        self.target = target


class TokenInUse(AlreadyAttached):
    """Le jeton de session est déjà rattaché à une autre commande (authority unique)."""
    code = "token_in_use"

    def __init__(self, order_id: str, token: str):
        StorefrontError.__init__(self, f"Jeton de session déjà utilisé par une autre commande que {order_id}")
        self.order_id = order_id
        self.current_token = None
        self.token = token
