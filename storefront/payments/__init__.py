"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le contrat prestataire (gateway) et l'adaptateur ZarinPal (httpx).
"""

from .gateway import PaymentGateway, PaymentSessionResult, VerificationResult
from .zarinpal_client import ZarinpalClient, REQUEST_SUCCESS_CODES, VERIFY_SUCCESS_CODES

__all__ = [
    # contrat
    "PaymentGateway",
    "PaymentSessionResult",
    "VerificationResult",
    # zarinpal
    "ZarinpalClient",
    "REQUEST_SUCCESS_CODES",
    "VERIFY_SUCCESS_CODES",
]
