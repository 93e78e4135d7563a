import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from storefront.orders.dependencies import get_orchestrator
from storefront.orders.service import OrderOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Catalog API"])

# module storefront.catalog.views
@router.get("/products")
async def list_products(orchestrator: OrderOrchestrator = Depends(get_orchestrator)):
    """
    Liste complète du catalogue pour la grille produits.
    - Réponse: {"success": true, "products": [{id, name, price, description, imageUrl}, ...]}
    - Catalogue injoignable: 500 {"success": false, "error": ...} via le handler StorefrontError.
    """
    products = await run_in_threadpool(orchestrator.list_products)
    return {"success": True, "products": [p.to_public() for p in products]}
