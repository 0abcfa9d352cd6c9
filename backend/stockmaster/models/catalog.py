from __future__ import annotations

from ..extensions import db
from stockmaster.time_utils import to_utc_z, utcnow


def normalize_sku(value: str | None) -> str:
    return (value or "").strip().upper()


class Product(db.Model):
    """
    Master catalog entry.

    One catalog serves every shop location. Per-location quantities live in
    StockLevel rows; Product.stocks exposes them as a location -> quantity map.

    SKU DESIGN DECISION:
    SKUs are stored upper-cased and trimmed but are NOT unique at the storage
    layer. Duplicate detection belongs to the catalog-merge import, which
    matches on SKU or name before creating anything.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_sku", "sku"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, default="")
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Other")
    description = db.Column(db.Text, nullable=True)

    # Low-stock threshold per location
    min_quantity = db.Column(db.Integer, nullable=False, default=5)

    # Authoritative storage in cents, VAT-inclusive
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    promo_price_cents = db.Column(db.Integer, nullable=True)
    offers = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    # Touched on every stock adjustment, not only on catalog edits
    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    stock_levels = db.relationship(
        "StockLevel",
        backref=db.backref("product", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def stocks(self) -> dict[str, int]:
        return {level.location: level.quantity for level in self.stock_levels}

    @property
    def effective_price_cents(self) -> int:
        return self.promo_price_cents or self.price_cents or 0

    def to_dict(self) -> dict:
        stocks = self.stocks
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "min_quantity": self.min_quantity,
            "price_cents": self.price_cents,
            "promo_price_cents": self.promo_price_cents,
            "offers": self.offers,
            "stocks": stocks,
            "total_quantity": sum(stocks.values()),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "last_updated": to_utc_z(self.last_updated),
        }


class StockLevel(db.Model):
    """
    Current quantity of one product at one location.

    Quantities may go negative: stock bookkeeping lag must never block a sale,
    so nothing here clamps at zero. Reporting surfaces negative rows.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location", name="uq_stock_levels_product_location"),
        db.Index("ix_stock_levels_location", "location"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<StockLevel product_id={self.product_id} location={self.location!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "location": self.location,
            "quantity": self.quantity,
        }
