from urllib.parse import urlparse
import socket

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from storefront.config import SUPABASE_URL, STORE_BACKEND
from storefront.infra import supabase_client
from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

PROBED_TABLES = ("products", "orders")

@router.get("")
def health_root():
    return {"ok": True}

def _check_table(client, name: str):
    try:
        res = client.table(name).select("id").limit(1).execute()
        cnt = len(res.data or [])
        return {"ok": True, "rows": cnt}
    except Exception as e:
        return {"ok": False, "error": str(e)}

@router.get("/supabase")
def health_supabase():
    """
    Diagnostic de la connexion Supabase: résolution DNS, puis lecture d'une ligne
    dans chaque table utilisée (products, orders).
    """
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info = {
        "store_backend": STORE_BACKEND,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_service_supabase()
        for t in PROBED_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return JSONResponse(info)

@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
