"""
Assemblage de l'orchestrateur à partir d'un StoreSettings.
- build_orchestrator(settings): choisit les implémentations (supabase | memory).
- get_orchestrator(request): dépendance FastAPI, lit l'instance posée sur app.state
  (surchargée dans les tests via app.dependency_overrides).
"""
import logging

from fastapi import Request

from storefront.catalog.repository import InMemoryCatalog, SupabaseCatalog
from storefront.config import PRODUCTS_FILE
from storefront.infra import supabase_client
from storefront.payments.zarinpal_client import ZarinpalClient
from storefront.settings import StoreSettings
from .repository import InMemoryOrderLedger, SupabaseOrderLedger
from .service import OrderOrchestrator

logger = logging.getLogger(__name__)

def build_orchestrator(settings: StoreSettings) -> OrderOrchestrator:
    if not settings.merchant_id:
        logger.warning("ZARINPAL_MERCHANT_ID vide: les demandes de paiement seront refusées")

    if settings.store_backend == "memory":
        logger.info("Store backend: memory (catalogue %s)", PRODUCTS_FILE)
        catalog = InMemoryCatalog.from_json(PRODUCTS_FILE)
        ledger = InMemoryOrderLedger()
    elif settings.store_backend == "supabase":
        catalog = SupabaseCatalog(supabase_client.get_supabase())
        ledger = SupabaseOrderLedger(supabase_client.get_service_supabase())
    else:
        raise RuntimeError(f"STORE_BACKEND inconnu: {settings.store_backend}")

    gateway = ZarinpalClient(
        api_url=settings.gateway_api_url,
        startpay_url=settings.gateway_startpay_url,
        timeout=settings.gateway_timeout,
    )
    return OrderOrchestrator(catalog=catalog, ledger=ledger, gateway=gateway, settings=settings)

def get_orchestrator(request: Request) -> OrderOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("Orchestrateur non initialisé (lifespan)")
    return orchestrator
