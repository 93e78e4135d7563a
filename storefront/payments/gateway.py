"""
Contrat du prestataire de paiement, indépendant de ZarinPal.
- request_session: ouvre une session de paiement et renvoie (jeton, URL de redirection).
- verify: vérifie un paiement terminé avec le montant stocké côté serveur.
Un refus explicite est un résultat (PaymentSessionResult / VerificationResult en échec);
un prestataire injoignable lève GatewayUnavailable.
"""
from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict


class PaymentSessionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    provider_code: Optional[int] = None


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    reference_id: Optional[str] = None
    reason: Optional[str] = None
    provider_code: Optional[int] = None


class PaymentGateway(Protocol):
    def request_session(
        self,
        *,
        amount: int,
        return_url: str,
        merchant_id: str,
        description: str,
    ) -> PaymentSessionResult: ...

    def verify(self, *, amount: int, session_token: str, merchant_id: str) -> VerificationResult: ...
