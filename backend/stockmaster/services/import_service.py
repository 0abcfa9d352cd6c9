# backend/stockmaster/services/import_service.py
"""
Structured catalog/stock import.

Rows arrive already parsed (sku, name, prices, quantity, ...). Text and
spreadsheet parsing happens before this boundary.

MODES:
- MASTER_PRICELIST: price override. Matches the row's SKU, plus every product
  whose name starts with the row's name. Price, promo and offers are updated
  with annotation rows at the master location. Unmatched rows become new
  products with no stock.
- SHOP_RESTOCK: stock override at one location. Matches by SKU or exact name
  (both upper-cased and trimmed); the location's quantity is set to the row
  quantity with an ADJUST movement carrying the applied delta. Unmatched rows
  become new products with an IN movement.

Import movements carry no document reference, so a later document revert can
never purge them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..models import Product, normalize_sku
from ..validation import ValidationError, to_cents, to_int, to_text
from .catalog_service import apply_product_patch
from .reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


IMPORT_MODE_MASTER_PRICELIST = "MASTER_PRICELIST"
IMPORT_MODE_SHOP_RESTOCK = "SHOP_RESTOCK"
IMPORT_MODES = (IMPORT_MODE_MASTER_PRICELIST, IMPORT_MODE_SHOP_RESTOCK)


class ImportRowError(Exception):
    """Raised when an import request or one of its rows is unusable."""


@dataclass
class ImportRow:
    sku: str = ""
    name: str = ""
    price_cents: int | None = None
    promo_price_cents: int | None = None
    quantity: int | None = None
    category: str | None = None
    offers: str | None = None
    description: str | None = None

    @property
    def sku_key(self) -> str:
        return normalize_sku(self.sku)

    @property
    def name_key(self) -> str:
        return (self.name or "").strip().upper()

    @classmethod
    def from_dict(cls, raw: dict[str, Any], number: int) -> "ImportRow":
        if not isinstance(raw, dict):
            raise ImportRowError(f"row {number} must be an object")
        try:
            row = cls(
                sku=to_text(raw.get("sku")) or "",
                name=to_text(raw.get("name")) or "",
                price_cents=to_cents(raw.get("price_cents", raw.get("price")), "price_cents"),
                promo_price_cents=to_cents(raw.get("promo_price_cents", raw.get("promo_price")), "promo_price_cents"),
                quantity=to_int(raw.get("quantity"), "quantity"),
                category=to_text(raw.get("category")),
                offers=to_text(raw.get("offers")),
                description=to_text(raw.get("description")),
            )
        except ValidationError as exc:
            raise ImportRowError(f"row {number}: {exc}") from exc
        if not row.sku_key and not row.name_key:
            raise ImportRowError(f"row {number}: sku or name is required")
        return row


@dataclass
class ImportSummary:
    mode: str
    location: str | None
    updated: list[int] = field(default_factory=list)
    created: list[int] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    movements: int = 0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "location": self.location,
            "updated": self.updated,
            "created": self.created,
            "skipped": self.skipped,
            "movements": self.movements,
        }


def _all_products(engine: ReconciliationEngine) -> list[Product]:
    return engine.session.query(Product).order_by(Product.id).all()


def _new_product(engine: ReconciliationEngine, row: ImportRow, *, default_min_quantity: int, description: str | None) -> Product:
    product = Product(
        sku=row.sku_key,
        name=row.name or "New Product",
        category=row.category or "Other",
        description=row.description or description,
        min_quantity=default_min_quantity,
        price_cents=row.price_cents or 0,
        promo_price_cents=row.promo_price_cents or None,
        offers=row.offers,
    )
    engine.session.add(product)
    engine.session.flush()
    return product


def _pricelist_matches(products: list[Product], row: ImportRow) -> list[Product]:
    matched: list[Product] = []
    if row.sku_key:
        for product in products:
            if normalize_sku(product.sku) == row.sku_key:
                matched.append(product)
                break
    if row.name_key:
        for product in products:
            if product in matched:
                continue
            if product.name.strip().upper().startswith(row.name_key):
                matched.append(product)
    return matched


def _restock_match(products: list[Product], row: ImportRow) -> Product | None:
    for product in products:
        if row.sku_key and normalize_sku(product.sku) == row.sku_key:
            return product
        if row.name_key and product.name.strip().upper() == row.name_key:
            return product
    return None


def _price_patch(row: ImportRow, *, override: bool) -> dict:
    """
    override=True (price list) writes price and promo as given, blank = 0/none.
    override=False (restock) only writes values the row actually carries.
    """
    patch: dict = {}
    if override:
        patch["price_cents"] = row.price_cents or 0
        patch["promo_price_cents"] = row.promo_price_cents or None
    else:
        if row.price_cents:
            patch["price_cents"] = row.price_cents
        if row.promo_price_cents:
            patch["promo_price_cents"] = row.promo_price_cents
    if row.offers:
        patch["offers"] = row.offers
    return patch


def run_import(
    engine: ReconciliationEngine,
    *,
    rows: list[ImportRow],
    mode: str,
    location: str | None = None,
    default_min_quantity: int = 5,
) -> ImportSummary:
    mode = (mode or "").strip().upper()
    if mode not in IMPORT_MODES:
        raise ImportRowError(f"mode must be one of {', '.join(IMPORT_MODES)}")
    if mode == IMPORT_MODE_SHOP_RESTOCK and not location:
        raise ImportRowError("location is required for SHOP_RESTOCK")

    summary = ImportSummary(mode=mode, location=location if mode == IMPORT_MODE_SHOP_RESTOCK else None)
    products = _all_products(engine)

    for number, row in enumerate(rows, start=1):
        if mode == IMPORT_MODE_MASTER_PRICELIST:
            matched = _pricelist_matches(products, row)
            if matched:
                for product in matched:
                    notes = apply_product_patch(engine, product, _price_patch(row, override=True))
                    summary.movements += len(notes)
                    summary.updated.append(product.id)
            else:
                product = _new_product(engine, row, default_min_quantity=default_min_quantity, description=None)
                products.append(product)
                summary.created.append(product.id)
            continue

        if row.quantity is None:
            summary.skipped.append({"row": number, "reason": "quantity is required"})
            continue

        product = _restock_match(products, row)
        if product is not None:
            notes = apply_product_patch(engine, product, _price_patch(row, override=False))
            engine.set_quantity(product.id, location, row.quantity, note=f"Stock override at {location}")
            summary.movements += len(notes) + 1
            summary.updated.append(product.id)
        else:
            product = _new_product(
                engine,
                row,
                default_min_quantity=default_min_quantity,
                description="Created during stock override",
            )
            products.append(product)
            if row.quantity > 0:
                engine.receive(product.id, location, row.quantity, note=f"New item stock load at {location}")
                summary.movements += 1
            elif row.quantity < 0:
                engine.adjust(product.id, location, row.quantity, note=f"New item stock load at {location}")
                summary.movements += 1
            summary.created.append(product.id)

    logger.info(
        "Import %s%s: %d updated, %d created, %d skipped",
        mode,
        f" at {location}" if summary.location else "",
        len(summary.updated),
        len(summary.created),
        len(summary.skipped),
    )
    return summary
