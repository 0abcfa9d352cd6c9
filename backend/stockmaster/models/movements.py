from __future__ import annotations

from ..extensions import db
from stockmaster.time_utils import to_utc_z, utcnow


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUST = "ADJUST"

MOVEMENT_KINDS = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUST)


class StockMovement(db.Model):
    """
    One row of the movement ledger: a single product/location quantity change.

    quantity_delta is signed and always equals the delta applied to the stock
    store by the same operation (IN > 0, OUT < 0, ADJUST either way; zero for
    annotation rows such as price changes).

    Rows are never updated. The only removal path is
    MovementLedger.purge_by_reference(), used when a document is reverted.

    product_id carries no foreign key: history must outlive catalog deletes,
    so the sku/name snapshot is stored alongside.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_product_location", "product_id", "location"),
        db.Index("ix_movements_reference", "reference_document_number"),
        db.Index("ix_movements_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=True)
    sku = db.Column(db.String(64), nullable=False, default="")
    product_name = db.Column(db.String(255), nullable=False, default="")

    location = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(16), nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    reference_document_number = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} {self.kind} {self.quantity_delta:+d} "
            f"product_id={self.product_id} location={self.location!r} ref={self.reference_document_number!r}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "location": self.location,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "occurred_at": to_utc_z(self.occurred_at),
            "reference_document_number": self.reference_document_number,
            "note": self.note,
        }
