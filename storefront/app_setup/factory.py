"""
Factory d'application utilisée par les entrypoints (storefront.asgi, python -m storefront).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
import logging
from fastapi import FastAPI

from storefront.config import LOG_LEVEL
from .lifespan import lifespan
from .middlewares import (
    register_basic_middlewares,
    register_security_middleware,
    register_no_cache_middleware,
    register_force_https_middleware,
)
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      1) middlewares de base (CORS, TrustedHost, proxy headers)
      2) en-têtes de sécurité, no-cache sur commandes/paiement
      3) gestionnaires d'exceptions (enveloppe {"success": false, "error"})
      4) routers (catalogue, commandes, health)
      5) redirection HTTPS en dernier pour qu'elle s'exécute en premier
    """
    logging.getLogger("storefront").setLevel(LOG_LEVEL.upper())
    app = FastAPI(title="Storefront API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
