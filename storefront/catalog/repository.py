"""
Accès en lecture au catalogue produits.
- CatalogReader: contrat (get / get_many / list_all), sans effet de bord.
- SupabaseCatalog: table 'products' via le client Supabase.
- InMemoryCatalog: catalogue figé (fichier JSON), utile en dev et en tests.
Un produit absent n'est pas une erreur d'infrastructure: get() renvoie None.
Un magasin injoignable lève CatalogUnavailable.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from storefront.orders.errors import CatalogUnavailable
from storefront.orders.models import Product

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"


class CatalogReader(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...

    def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]: ...

    def list_all(self) -> List[Product]: ...


def _parse_products(rows: Iterable[Dict[str, Any]]) -> List[Product]:
    """Convertit des lignes brutes en Product en ignorant celles qui sont invalides."""
    products: List[Product] = []
    for row in rows or []:
        if not row:
            continue
        try:
            products.append(Product.model_validate(row))
        except ValidationError:
            logger.warning("catalog: fiche produit ignorée id=%s", (row or {}).get("id"))
    return products


class SupabaseCatalog:
    def __init__(self, client, table: str = PRODUCTS_TABLE):
        self._client = client
        self._table = table

    def get(self, product_id: str) -> Optional[Product]:
        return self.get_many([product_id]).get(product_id)

    def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        ids = sorted({str(i) for i in product_ids if i})
        if not ids:
            return {}
        try:
            res = (
                self._client
                .table(self._table)
                .select("*")
                .in_("id", ids)
                .execute()
            )
        except Exception as e:
            logger.exception("catalog.get_many failed ids=%s", ids)
            raise CatalogUnavailable("Error processing cart") from e
        return {p.id: p for p in _parse_products(res.data or [])}

    def list_all(self) -> List[Product]:
        try:
            res = self._client.table(self._table).select("*").order("id").execute()
        except Exception as e:
            logger.exception("catalog.list_all failed")
            raise CatalogUnavailable("Catalog unavailable") from e
        return _parse_products(res.data or [])


class InMemoryCatalog:
    def __init__(self, products: Iterable[Product] = ()):
        self._products: Dict[str, Product] = {p.id: p for p in products}

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryCatalog":
        """
        Charge un fichier JSON: liste de produits, ou objet {id: produit}
        (même forme qu'un export clé/valeur).
        """
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        rows = list(raw.values()) if isinstance(raw, dict) else list(raw)
        return cls(_parse_products(rows))

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}

    def list_all(self) -> List[Product]:
        return [self._products[k] for k in sorted(self._products)]
