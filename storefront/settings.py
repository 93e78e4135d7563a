"""
Valeur de configuration explicite passée à l'orchestrateur et aux fabriques.
Construite une fois depuis storefront.config; les tests construisent la leur.
"""
from pydantic import BaseModel, ConfigDict, Field


class StoreSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    merchant_id: str
    store_backend: str = "supabase"
    gateway_api_url: str = "https://api.zarinpal.com/pg/v4/payment"
    gateway_startpay_url: str = "https://www.zarinpal.com/pg/StartPay/"
    gateway_timeout: float = Field(default=10.0, gt=0)
    description_prefix: str = "Order from storefront"


def load_store_settings() -> StoreSettings:
    from storefront import config

    return StoreSettings(
        merchant_id=config.ZARINPAL_MERCHANT_ID,
        store_backend=config.STORE_BACKEND,
        gateway_api_url=config.ZARINPAL_API_URL,
        gateway_startpay_url=config.ZARINPAL_STARTPAY_URL,
        gateway_timeout=config.PAYMENT_TIMEOUT_SECONDS,
        description_prefix=config.PAYMENT_DESCRIPTION_PREFIX,
    )
