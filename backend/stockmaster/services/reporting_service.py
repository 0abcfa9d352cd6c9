# Overview: Read-only reports over stock levels and documents.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import (
    DOCUMENT_STATUS_CANCELLED,
    DOCUMENT_TYPE_SALE,
    DOCUMENT_TYPE_TRANSFER,
    Document,
    Product,
)
from .stock_store import StockStore


class ReportError(Exception):
    """Raised when report generation fails."""


def _quantity_for(product: Product, location: str, global_view: str) -> int:
    stocks = product.stocks
    if location == global_view:
        return sum(stocks.values())
    return int(stocks.get(location, 0))


def _check_location(location: str, locations, global_view: str) -> None:
    if location != global_view and location not in locations:
        raise ReportError(f"Unknown location: {location}")


def location_summary(session: Session, location: str, *, locations, global_view: str = "Global") -> dict:
    """
    Units, retail value and low-stock count at one location, or across all
    of them for the aggregate view. Value uses the promo price when set.
    """
    _check_location(location, locations, global_view)

    products = session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    total_units = 0
    total_value_cents = 0
    low_stock = 0
    categories: dict[str, int] = {}

    for product in products:
        quantity = _quantity_for(product, location, global_view)
        total_units += quantity
        total_value_cents += quantity * product.effective_price_cents
        if quantity <= product.min_quantity:
            low_stock += 1
        categories[product.category] = categories.get(product.category, 0) + 1

    return {
        "location": location,
        "product_count": len(products),
        "total_units": total_units,
        "total_value_cents": total_value_cents,
        "low_stock_count": low_stock,
        "categories": [{"name": name, "count": count} for name, count in sorted(categories.items())],
    }


def low_stock(session: Session, location: str, *, locations, global_view: str = "Global") -> list[dict]:
    _check_location(location, locations, global_view)

    rows = []
    for product in session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all():
        quantity = _quantity_for(product, location, global_view)
        if quantity <= product.min_quantity:
            rows.append(
                {
                    "product_id": product.id,
                    "sku": product.sku,
                    "name": product.name,
                    "quantity": quantity,
                    "min_quantity": product.min_quantity,
                }
            )
    return rows


def negative_stock(session: Session) -> list[dict]:
    return [
        {
            "product_id": level.product_id,
            "sku": level.product.sku,
            "name": level.product.name,
            "location": level.location,
            "quantity": level.quantity,
        }
        for level in StockStore(session).negative_levels()
    ]


def pending_documents(session: Session, location: str | None = None, *, global_view: str = "Global") -> list[Document]:
    """
    Live documents still missing their administrative link: sales without an
    invoice number, transfers without a transfer note number.
    """
    q = session.query(Document).filter(
        Document.status != DOCUMENT_STATUS_CANCELLED,
        or_(
            (Document.document_type == DOCUMENT_TYPE_SALE) & (Document.invoice_number.is_(None)),
            (Document.document_type == DOCUMENT_TYPE_TRANSFER) & (Document.transfer_note_number.is_(None)),
        ),
    )
    if location and location != global_view:
        q = q.filter(Document.source_location == location)
    return q.order_by(Document.occurred_at.desc()).all()
