# module storefront.orders.views

"""Endpoints commandes et retour du prestataire de paiement.
- POST /api/orders/create: calcule le total côté serveur, crée la commande PENDING
  et renvoie l'URL de paiement (rate-limité).
- GET /api/payment/callback: réconcilie la redirection du prestataire (orderId, Authority, Status).
- GET /api/orders/{order_id}: statut courant, pour que le front puisse interroger le résultat.
Les erreurs métier (StorefrontError) sont converties en {"success": false, "error": ...}
par le handler global (app_setup.exceptions).
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from storefront.pricing.service import parse_cart_lines
from storefront.utils.rate_limit import optional_rate_limit
from .dependencies import get_orchestrator
from .errors import InvalidRequest
from .service import CallbackOutcome, OrderOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Orders API"])


async def _read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequest("Corps JSON invalide")
    if not isinstance(body, dict):
        raise InvalidRequest("Corps JSON invalide")
    return body


@router.post("/orders/create", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_order(request: Request, orchestrator: OrderOrchestrator = Depends(get_orchestrator)):
    """Crée une commande et demande une session de paiement.
    Entrée JSON: {"items": [{"productId": "<id>", "quantity": <int>}, ...], "callback_url": "<url>"}
    - Aucun prix n'est lu depuis le client.
    - 400 panier/URL invalide, 404 produit inconnu, 500 catalogue/prestataire indisponible.
    - Réponse: {"success": true, "paymentUrl": "...", "orderId": "ORDER_..."}
    """
    body = await _read_json_body(request)
    callback_url = body.get("callback_url")
    if not isinstance(callback_url, str) or not callback_url.strip():
        raise InvalidRequest("Cart items and callback URL are required.")
    lines = parse_cart_lines(body.get("items"))

    result = await run_in_threadpool(orchestrator.create_order, lines, callback_url)
    return {"success": True, "paymentUrl": result.payment_url, "orderId": result.order_id}


@router.get("/payment/callback")
async def payment_callback(
    orderId: Optional[str] = None,
    Authority: Optional[str] = None,
    Status: Optional[str] = None,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
):
    """Retour du prestataire après paiement (ou annulation).
    - Paramètres requis: orderId, Authority, Status (400 sinon).
    - Status != OK: commande FAILED, réponse {"success": false, "message": "cancelled"}.
    - Vérification avec le montant stocké; succès -> {"success": true, "message", "refId"}.
    - Rappel rejoué: renvoie l'issue déjà stockée, sans erreur.
    """
    result = await run_in_threadpool(orchestrator.handle_callback, orderId or "", Authority or "", Status or "")

    if result.outcome is CallbackOutcome.COMPLETED:
        return {"success": True, "message": "Payment successful", "refId": result.reference_id}
    if result.outcome is CallbackOutcome.CANCELLED:
        return {"success": False, "message": "cancelled"}
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Payment verification failed", "reason": result.reason},
    )


@router.get("/orders/{order_id}")
async def get_order(order_id: str, orchestrator: OrderOrchestrator = Depends(get_orchestrator)):
    """Statut courant d'une commande (sans jeton de session)."""
    order = await run_in_threadpool(orchestrator.get_order, order_id)
    return {"success": True, "order": order.to_public()}
