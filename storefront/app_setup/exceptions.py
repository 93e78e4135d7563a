"""
Gestionnaires d'exceptions.
- StorefrontError -> {"success": false, "error": <message>} avec le status porté par l'erreur.
- HTTPException (429 du rate limit, 404 de routage...) -> même enveloppe.
- Toute autre exception -> journalisée, 500 générique: jamais de trace côté client.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.orders.errors import StorefrontError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Erreur non gérée %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Erreur interne"})
