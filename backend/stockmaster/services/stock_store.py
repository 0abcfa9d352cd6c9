# Overview: Stock store; per-product, per-location quantities.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import Product, StockLevel
from .concurrency import lock_for_update
from stockmaster.time_utils import utcnow
"""
Stock Store Invariants (authoritative)

- Source of truth for "how many units of product P are at location L now".
- Missing rows read as 0; adjust() creates them on demand.
- adjust() never raises for negative results. Negative stock is a reportable
  condition, not a blocking error.
- Every adjustment touches Product.last_updated.
- Only the reconciliation engine calls the mutating methods.
"""


class StockStore:
    def __init__(self, session: Session):
        self._session = session

    def _level(self, product_id: int, location: str, *, for_update: bool = False) -> StockLevel | None:
        query = self._session.query(StockLevel).filter_by(product_id=product_id, location=location)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def get_quantity(self, product_id: int, location: str) -> int:
        level = self._level(product_id, location)
        return int(level.quantity) if level is not None else 0

    def adjust(self, product_id: int, location: str, delta: int) -> int:
        """Add delta (positive or negative) and return the resulting quantity."""
        product = self._session.get(Product, product_id)
        level = self._level(product_id, location, for_update=True)
        if level is None:
            level = StockLevel(product_id=product_id, location=location, quantity=0)
            if product is not None:
                # keeps an already-loaded Product.stock_levels collection in sync
                level.product = product
            self._session.add(level)

        level.quantity = int(level.quantity or 0) + int(delta)
        if product is not None:
            product.last_updated = utcnow()
        self._session.flush()
        return level.quantity

    def set_quantity(self, product_id: int, location: str, quantity: int) -> int:
        """Overwrite the quantity at a location. Returns the delta applied."""
        delta = int(quantity) - self.get_quantity(product_id, location)
        self.adjust(product_id, location, delta)
        return delta

    def aggregate(self, product_id: int) -> int:
        """Sum over every location (the Global view)."""
        total = (
            self._session.query(func.coalesce(func.sum(StockLevel.quantity), 0))
            .filter(StockLevel.product_id == product_id)
            .scalar()
        )
        return int(total or 0)

    def levels_at(self, location: str, *, nonzero: bool = False) -> list[StockLevel]:
        q = self._session.query(StockLevel).filter(StockLevel.location == location)
        if nonzero:
            q = q.filter(StockLevel.quantity != 0)
        return q.order_by(StockLevel.product_id).all()

    def negative_levels(self) -> list[StockLevel]:
        return (
            self._session.query(StockLevel)
            .filter(StockLevel.quantity < 0)
            .order_by(StockLevel.location, StockLevel.product_id)
            .all()
        )
