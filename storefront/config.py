# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

DATA_DIR = Path(__file__).resolve().parent / "data"

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, ZarinPal), sécurité, CORS/hosts
- Aucune autre partie du code ne lit os.environ pour la logique métier:
  l'orchestrateur reçoit un StoreSettings explicite (voir orders.dependencies)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

# Supabase: URL et clés (anon pour le catalogue, service pour le registre des commandes)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Backend de stockage: "supabase" (prod) ou "memory" (dev local)
STORE_BACKEND = _clean_env(os.getenv("STORE_BACKEND") or "supabase").lower()
PRODUCTS_FILE = DATA_DIR / "products.json"

# ZarinPal: identifiant marchand et hôtes
ZARINPAL_MERCHANT_ID = _clean_env(os.getenv("ZARINPAL_MERCHANT_ID") or "")
ZARINPAL_SANDBOX = _flag("ZARINPAL_SANDBOX")
if ZARINPAL_SANDBOX:
    ZARINPAL_API_URL = "https://sandbox.zarinpal.com/pg/v4/payment"
    ZARINPAL_STARTPAY_URL = "https://sandbox.zarinpal.com/pg/StartPay/"
else:
    ZARINPAL_API_URL = "https://api.zarinpal.com/pg/v4/payment"
    ZARINPAL_STARTPAY_URL = "https://www.zarinpal.com/pg/StartPay/"

try:
    PAYMENT_TIMEOUT_SECONDS = float(_clean_env(os.getenv("PAYMENT_TIMEOUT_SECONDS") or "10"))
except ValueError:
    PAYMENT_TIMEOUT_SECONDS = 10.0
PAYMENT_DESCRIPTION_PREFIX = _clean_env(os.getenv("PAYMENT_DESCRIPTION_PREFIX") or "Order from storefront")

# Sécurité / CORS
COOKIE_SECURE = _flag("COOKIE_SECURE")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
# Proxys dont les en-têtes X-Forwarded-* sont pris en compte (IP cliente, schéma)
FORWARDED_ALLOW_IPS = [h.strip() for h in os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1").split(",") if h.strip()]

LOG_LEVEL = _clean_env(os.getenv("LOG_LEVEL") or "info").lower()
