# module storefront.orders.models
"""
Modèles de données du cœur commandes/paiement.
- Product: fiche catalogue (lecture seule de notre point de vue).
- CartLine: ligne de panier envoyée par le client (jamais de prix).
- Order: commande persistée dans le registre; montant fixé une seule fois.
- OrderStatus + ALLOWED_TRANSITIONS: machine à états PENDING -> COMPLETED | FAILED.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidTransition

ORDER_ID_PREFIX = "ORDER_"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED})

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}


def ensure_transition_allowed(source: OrderStatus, target: OrderStatus) -> None:
    """Lève InvalidTransition si le graphe d'états n'autorise pas source -> target."""
    if target not in ALLOWED_TRANSITIONS.get(source, frozenset()):
        raise InvalidTransition(source.value, target.value)


def new_order_id() -> str:
    return f"{ORDER_ID_PREFIX}{uuid4()}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    price: int = Field(ge=0)
    description: str = ""
    image_url: str = Field(default="", alias="imageUrl")

    def to_public(self) -> Dict[str, Any]:
        # Forme attendue par le front (camelCase)
        return self.model_dump(by_alias=True)


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class PricedLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    unit_price: int
    quantity: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


class PricedCart(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int
    lines: tuple[PricedLine, ...]


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    amount: int = Field(ge=0)
    status: OrderStatus = OrderStatus.PENDING
    session_token: Optional[str] = None
    reference_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        """Construit une Order depuis une ligne de la table 'orders'."""
        ref = row.get("ref_id")
        return cls(
            id=str(row["id"]),
            amount=int(row["amount"]),
            status=OrderStatus(row.get("status") or OrderStatus.PENDING.value),
            session_token=row.get("authority") or None,
            reference_id=str(ref) if ref not in (None, "") else None,
            failure_reason=row.get("failure_reason") or None,
            created_at=row.get("created_at") or utcnow(),
            updated_at=row.get("updated_at") or None,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "status": self.status.value,
            "authority": self.session_token,
            "ref_id": self.reference_id,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_public(self) -> Dict[str, Any]:
        # Pas de jeton de session côté client
        return {
            "id": self.id,
            "amount": self.amount,
            "status": self.status.value,
            "refId": self.reference_id,
            "createdAt": self.created_at.isoformat(),
        }
