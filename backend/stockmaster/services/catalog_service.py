# backend/stockmaster/services/catalog_service.py
"""
Catalog service: master product create/update/delete.

Stock changes made here go through the reconciliation engine so that every
quantity change has a movement row. Price, promo and offer edits leave a
zero-delta ADJUST row at the master location as change history.
"""
from __future__ import annotations

import logging

from ..models import Product, normalize_sku
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .reconciliation import ReconciliationEngine
from stockmaster.time_utils import utcnow

logger = logging.getLogger(__name__)


PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "category",
    "description",
    "min_quantity",
    "price_cents",
    "promo_price_cents",
    "offers",
}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name"},
)


class CatalogError(Exception):
    """Raised when catalog operations fail."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def _money(cents: int | None) -> str:
    if cents is None:
        return "none"
    return f"{cents / 100:,.2f}"


def apply_product_patch(engine: ReconciliationEngine, product: Product, patch: dict) -> list[str]:
    """Apply a validated patch; returns the annotation notes written."""
    notes = []
    if "price_cents" in patch and patch["price_cents"] != product.price_cents:
        notes.append(f"Price changed: {_money(product.price_cents)} -> {_money(patch['price_cents'])}")
    if "promo_price_cents" in patch and patch["promo_price_cents"] != product.promo_price_cents:
        notes.append(f"Promo changed: {_money(product.promo_price_cents)} -> {_money(patch['promo_price_cents'])}")
    if "offers" in patch and (patch["offers"] or None) != (product.offers or None):
        notes.append(f"Offer changed: {product.offers or 'none'} -> {patch['offers'] or 'none'}")

    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key == "sku":
            value = normalize_sku(value)
        setattr(product, key, value)
    product.last_updated = utcnow()

    for note in notes:
        engine.annotate(product, note)
    return notes


def get_product(engine: ReconciliationEngine, product_id: int) -> Product:
    product = engine.session.get(Product, product_id)
    if product is None:
        raise CatalogError("Product not found", status=404)
    return product


def list_products(engine: ReconciliationEngine, *, text: str | None = None, category: str | None = None) -> list[Product]:
    q = engine.session.query(Product)
    if text:
        pattern = f"%{text.strip()}%"
        q = q.filter((Product.name.ilike(pattern)) | (Product.sku.ilike(pattern)))
    if category:
        q = q.filter(Product.category == category)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(
    engine: ReconciliationEngine,
    *,
    payload: dict,
    initial_stock: dict[str, int] | None = None,
    default_min_quantity: int = 5,
) -> Product:
    """
    Create a catalog entry. initial_stock (location -> qty) is booked as IN
    movements; zero and negative entries are ignored.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(
        sku=normalize_sku(patch.get("sku")),
        name=patch["name"],
        category=patch.get("category") or "Other",
        description=patch.get("description"),
        min_quantity=patch["min_quantity"] if patch.get("min_quantity") is not None else default_min_quantity,
        price_cents=patch.get("price_cents") or 0,
        promo_price_cents=patch.get("promo_price_cents"),
        offers=patch.get("offers"),
    )
    engine.session.add(product)
    engine.session.flush()

    for location, quantity in (initial_stock or {}).items():
        if quantity and quantity > 0:
            engine.receive(product.id, location, quantity, note="Initial stock")

    logger.info("Created product %s (%s)", product.id, product.sku or product.name)
    return product


def update_product(engine: ReconciliationEngine, product_id: int, *, payload: dict) -> Product:
    product = get_product(engine, product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    apply_product_patch(engine, product, patch)
    engine.session.flush()
    return product


def delete_product(engine: ReconciliationEngine, product_id: int) -> None:
    """
    Remove a product and its stock levels.

    Movements and document lines keep their sku/name snapshot and are not
    touched.
    """
    product = get_product(engine, product_id)
    engine.session.delete(product)
    engine.session.flush()
    logger.info("Deleted product %s", product_id)


def clear_location(engine: ReconciliationEngine, location: str, note: str = "Shop stock cleared") -> int:
    """Zero every non-zero quantity at a location. Returns the rows adjusted."""
    levels = engine.stock.levels_at(location, nonzero=True)
    for level in levels:
        engine.adjust(level.product_id, location, -level.quantity, note=note)
    return len(levels)
