"""
Calcul du montant faisant foi (pas de Supabase, pas de prestataire).
Le panier client ne fournit que des identifiants et des quantités:
tout prix ou sous-total envoyé par le client est ignoré.
"""
from typing import Any, Dict, List

from storefront.catalog.repository import CatalogReader
from storefront.orders.errors import InvalidRequest, UnknownProduct
from storefront.orders.models import CartLine, PricedCart, PricedLine

# module storefront.pricing.service
def parse_cart_lines(items: Any) -> List[CartLine]:
    """
    Valide un panier brut [{productId, quantity}, ...] et le convertit en CartLine.
    - Panier vide ou absent -> InvalidRequest.
    - productId vide, quantité non entière ou < 1 -> InvalidRequest (pas de ligne ignorée en silence).
    """
    if not isinstance(items, list) or not items:
        raise InvalidRequest("Cart items and callback URL are required.")
    lines: List[CartLine] = []
    for it in items:
        if not isinstance(it, dict):
            raise InvalidRequest("Ligne de panier invalide")
        product_id = str(it.get("productId") or "").strip()
        qty = it.get("quantity")
        # bool est un int en Python: on l'exclut explicitement
        if not product_id or isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise InvalidRequest(f"Ligne de panier invalide: {product_id or '?'}")
        lines.append(CartLine(product_id=product_id, quantity=qty))
    return lines


def compute_total(lines: List[CartLine], catalog: CatalogReader) -> PricedCart:
    """
    Calcule le total en unités monétaires entières: somme(prix catalogue * quantité).
    - Une seule lecture catalogue pour l'ensemble des identifiants.
    - Échoue au premier identifiant inconnu (UnknownProduct), aucun total partiel.
    - CatalogUnavailable est propagée telle quelle.
    Retourne le montant et le détail par ligne (prix unitaire résolu), pour audit.
    """
    if not lines:
        raise InvalidRequest("Cart items and callback URL are required.")
    products = catalog.get_many([line.product_id for line in lines])

    amount = 0
    priced: List[PricedLine] = []
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise UnknownProduct(line.product_id)
        priced_line = PricedLine(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=line.quantity,
        )
        amount += priced_line.subtotal
        priced.append(priced_line)
    return PricedCart(amount=amount, lines=tuple(priced))


def summarize(cart: PricedCart) -> Dict[str, int]:
    """Quantités agrégées par produit (utile pour les logs)."""
    quantities: Dict[str, int] = {}
    for line in cart.lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
    return quantities
