from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from stockmaster.time_utils import to_utc_z, utcnow


DOCUMENT_TYPE_SALE = "SALE"
DOCUMENT_TYPE_TRANSFER = "TRANSFER"
DOCUMENT_TYPE_REFUND = "REFUND"

DOCUMENT_TYPES = (DOCUMENT_TYPE_SALE, DOCUMENT_TYPE_TRANSFER, DOCUMENT_TYPE_REFUND)

DOCUMENT_STATUS_ISSUED = "ISSUED"
DOCUMENT_STATUS_CANCELLED = "CANCELLED"


def normalize_document_number(value: str | None) -> str:
    """Comparison key for document numbers: trimmed, case-insensitive."""
    return (value or "").strip().lower()


class Document(db.Model):
    """
    Issued commercial document: sale receipt, inter-shop transfer note or
    VAT refund form.

    LIFECYCLE:
    1. ISSUED: created on first issue; edits replace content in place
       (same id, new number/lines/totals). No version history is kept here;
       the movement ledger carries one explanation per current version.
    2. CANCELLED: stock effect reverted, movements purged. The number is
       released and may be reused by another document.

    DOCUMENT NUMBERS:
    Numbers share a single series across all types. number_key holds the
    normalized form used for the uniqueness check. The reconciliation engine
    checks it before any mutation; uq_documents_live_number backs it up in
    the database for non-cancelled rows (cancelled documents keep their
    number but do not reserve it).
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_number_key", "number_key"),
        db.Index(
            "uq_documents_live_number",
            "number_key",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
        db.Index("ix_documents_type_status", "document_type", "status"),
        db.Index("ix_documents_source", "source_location"),
    )

    # Caller-assigned (or generated) public id; immutable once issued
    id = db.Column(db.String(36), primary_key=True)

    document_type = db.Column(db.String(16), nullable=False)
    document_number = db.Column(db.String(64), nullable=False)
    number_key = db.Column(db.String(64), nullable=False)

    # Business date of the document
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    source_location = db.Column(db.String(64), nullable=False)
    dest_location = db.Column(db.String(64), nullable=True)

    salesperson = db.Column(db.String(128), nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(64), nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    invoice_number = db.Column(db.String(64), nullable=True)
    transfer_note_number = db.Column(db.String(64), nullable=True)
    footer_note = db.Column(db.Text, nullable=True)

    # VAT refund traveller details (passport, flight, ...)
    visitor = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DOCUMENT_STATUS_ISSUED, index=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "DocumentLine",
        backref=db.backref("document", lazy=True),
        lazy=True,
        order_by="DocumentLine.line_number",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Document id={self.id!r} type={self.document_type} number={self.document_number!r} status={self.status}>"

    @property
    def is_cancelled(self) -> bool:
        return self.status == DOCUMENT_STATUS_CANCELLED

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_type": self.document_type,
            "document_number": self.document_number,
            "occurred_at": to_utc_z(self.occurred_at),
            "source_location": self.source_location,
            "dest_location": self.dest_location,
            "salesperson": self.salesperson,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "subtotal_cents": self.subtotal_cents,
            "discount_bps": self.discount_bps,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "invoice_number": self.invoice_number,
            "transfer_note_number": self.transfer_note_number,
            "footer_note": self.footer_note,
            "visitor": self.visitor,
            "status": self.status,
            "issued_at": to_utc_z(self.issued_at),
            "updated_at": to_utc_z(self.updated_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class DocumentLine(db.Model):
    """
    Line item on a document.

    WHY no FK on product_id: a document snapshots sku/name so it stays useful
    after the catalog drifts or the product is deleted.

    applied records whether this line's stock effect was actually applied.
    Lines referencing unknown products are skipped (applied=False), and revert
    only inverts applied lines.
    """
    __tablename__ = "document_lines"
    __table_args__ = (
        db.UniqueConstraint("document_id", "line_number", name="uq_document_lines_doc_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.String(36), db.ForeignKey("documents.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=True, index=True)
    sku = db.Column(db.String(64), nullable=False, default="")
    name = db.Column(db.String(255), nullable=False, default="")

    # Always positive; direction comes from the document type
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    promo_price_cents = db.Column(db.Integer, nullable=True)

    # TRANSFER only: per-line destination, falls back to the document's
    dest_location = db.Column(db.String(64), nullable=True)

    applied = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "line_number": self.line_number,
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "promo_price_cents": self.promo_price_cents,
            "dest_location": self.dest_location,
            "applied": self.applied,
        }
