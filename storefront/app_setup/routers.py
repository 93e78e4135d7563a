"""
Registre central des routers.
- API: catalogue (/api/products), commandes et retour prestataire (/api/orders/*, /api/payment/*)
- Health: /health, /health/supabase, /health/rate-limit
"""
from fastapi import FastAPI
from storefront.catalog import views as catalog_views
from storefront.orders import views as orders_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(catalog_views.router)
    app.include_router(orders_views.router)
    app.include_router(health_router)
