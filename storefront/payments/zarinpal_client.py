"""
Adaptateur ZarinPal (API v4): centralise les appels HTTP vers le prestataire.
- request_session -> POST {api}/request.json, succès si data.code == 100 et data.authority.
- verify -> POST {api}/verify.json, succès si data.code ∈ {100, 101}; 101 signifie
  « déjà vérifié » (rejeu après une réponse perdue).
- Timeout, erreur réseau, 5xx ou corps non JSON -> GatewayUnavailable.
Aucune relance automatique: une session rejouée pourrait être dupliquée.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from storefront.orders.errors import GatewayUnavailable
from .gateway import PaymentSessionResult, VerificationResult

logger = logging.getLogger(__name__)

REQUEST_SUCCESS_CODES = frozenset({100})
VERIFY_SUCCESS_CODES = frozenset({100, 101})

_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _provider_error(payload: Dict[str, Any]) -> Tuple[Optional[int], str]:
    """
    Extrait (code, message) du bloc 'errors' ZarinPal.
    - errors peut être un dict, une liste vide ou absent selon les cas.
    """
    errors = payload.get("errors") or {}
    if isinstance(errors, list):
        errors = errors[0] if errors and isinstance(errors[0], dict) else {}
    code = errors.get("code")
    message = errors.get("message") or "Unknown provider error"
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    return code, str(message)


def _data_code(data: Dict[str, Any]) -> Optional[int]:
    try:
        return int(data.get("code"))
    except (TypeError, ValueError):
        return None


class ZarinpalClient:
    def __init__(
        self,
        *,
        api_url: str,
        startpay_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.startpay_url = startpay_url if startpay_url.endswith("/") else startpay_url + "/"
        self.timeout = timeout
        self._http = http_client or httpx.Client(timeout=timeout, headers=_HEADERS)

    def close(self) -> None:
        self._http.close()

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_url}/{endpoint}"
        try:
            response = self._http.post(url, json=body, headers=_HEADERS, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.warning("zarinpal %s timeout après %ss", endpoint, self.timeout)
            raise GatewayUnavailable("Payment gateway timeout") from e
        except httpx.HTTPError as e:
            logger.warning("zarinpal %s erreur réseau: %s", endpoint, e)
            raise GatewayUnavailable("Payment gateway unreachable") from e

        if response.status_code >= 500:
            logger.warning("zarinpal %s HTTP %s", endpoint, response.status_code)
            raise GatewayUnavailable(f"Payment gateway error (HTTP {response.status_code})")
        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("zarinpal %s réponse non JSON (HTTP %s)", endpoint, response.status_code)
            raise GatewayUnavailable("Malformed payment gateway response") from e
        if not isinstance(payload, dict):
            raise GatewayUnavailable("Malformed payment gateway response")
        return payload

    def payment_url(self, authority: str) -> str:
        return f"{self.startpay_url}{authority}"

    def request_session(
        self,
        *,
        amount: int,
        return_url: str,
        merchant_id: str,
        description: str,
    ) -> PaymentSessionResult:
        payload = self._post("request.json", {
            "merchant_id": merchant_id,
            "amount": amount,
            "callback_url": return_url,
            "description": description,
        })
        data = payload.get("data") or {}
        if isinstance(data, dict):
            code = _data_code(data)
            authority = data.get("authority")
            if code in REQUEST_SUCCESS_CODES and authority:
                return PaymentSessionResult(
                    success=True,
                    token=str(authority),
                    redirect_url=self.payment_url(str(authority)),
                    provider_code=code,
                )
        code, message = _provider_error(payload)
        logger.error("ZarinPal request failed: code=%s message=%s", code, message)
        return PaymentSessionResult(success=False, error=message, provider_code=code)

    def verify(self, *, amount: int, session_token: str, merchant_id: str) -> VerificationResult:
        payload = self._post("verify.json", {
            "merchant_id": merchant_id,
            "amount": amount,
            "authority": session_token,
        })
        data = payload.get("data") or {}
        if isinstance(data, dict):
            code = _data_code(data)
            if code in VERIFY_SUCCESS_CODES:
                ref_id = data.get("ref_id")
                return VerificationResult(
                    success=True,
                    reference_id=str(ref_id) if ref_id is not None else None,
                    provider_code=code,
                )
        code, message = _provider_error(payload)
        logger.error("ZarinPal verification failed: code=%s message=%s", code, message)
        return VerificationResult(success=False, reason=message, provider_code=code)
