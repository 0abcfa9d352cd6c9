# Overview: Document registry; issued documents keyed by id, searchable by number.

from __future__ import annotations

from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models import (
    DOCUMENT_STATUS_CANCELLED,
    DOCUMENT_STATUS_ISSUED,
    Document,
    DocumentLine,
    normalize_document_number,
)
from .document_schemas import DocumentDraft
from stockmaster.time_utils import utcnow


_HEADER_FIELDS = (
    "document_type",
    "document_number",
    "occurred_at",
    "source_location",
    "dest_location",
    "salesperson",
    "customer_name",
    "customer_email",
    "customer_phone",
    "customer_address",
    "subtotal_cents",
    "discount_bps",
    "total_cents",
    "payment_method",
    "payment_reference",
    "invoice_number",
    "transfer_note_number",
    "footer_note",
    "visitor",
)


class DocumentRegistry:
    def __init__(self, session: Session):
        self._session = session

    def find_by_id(self, document_id: str | None) -> Document | None:
        if not document_id:
            return None
        return self._session.get(Document, document_id)

    def find_by_number(
        self,
        document_number: str,
        *,
        exclude_id: str | None = None,
        include_cancelled: bool = False,
    ) -> Document | None:
        """Trimmed, case-insensitive lookup across all document types."""
        key = normalize_document_number(document_number)
        if not key:
            return None
        q = self._session.query(Document).filter(Document.number_key == key)
        if exclude_id is not None:
            q = q.filter(Document.id != exclude_id)
        if not include_cancelled:
            q = q.filter(Document.status != DOCUMENT_STATUS_CANCELLED)
        return q.order_by(Document.issued_at).first()

    def upsert(self, draft: DocumentDraft, *, applied_lines: Iterable[bool] = ()) -> tuple[Document, bool]:
        """
        Insert a new document or replace an existing one in place.

        The whole content is replaced, lines included; id and issued_at are
        kept. applied_lines is parallel to draft.lines. Returns
        (document, created).
        """
        applied = list(applied_lines)
        now = utcnow()

        doc = self.find_by_id(draft.id)
        created = doc is None
        if created:
            doc = Document(id=draft.id, issued_at=now)
            self._session.add(doc)
        else:
            # Drop old lines before inserting new ones with the same line numbers
            doc.lines.clear()
            self._session.flush()

        for field_name in _HEADER_FIELDS:
            setattr(doc, field_name, getattr(draft, field_name))
        doc.number_key = draft.number_key
        doc.status = DOCUMENT_STATUS_ISSUED
        doc.cancelled_at = None
        doc.cancellation_reason = None
        doc.updated_at = now

        for index, line in enumerate(draft.lines):
            doc.lines.append(
                DocumentLine(
                    line_number=index + 1,
                    product_id=line.product_id,
                    sku=line.sku,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    promo_price_cents=line.promo_price_cents,
                    dest_location=line.dest_location,
                    applied=applied[index] if index < len(applied) else False,
                )
            )

        self._session.flush()
        return doc, created

    def mark_cancelled(self, doc: Document, reason: str | None) -> Document:
        now = utcnow()
        doc.status = DOCUMENT_STATUS_CANCELLED
        doc.cancelled_at = now
        doc.cancellation_reason = reason
        doc.updated_at = now
        for line in doc.lines:
            line.applied = False
        self._session.flush()
        return doc

    def list(
        self,
        *,
        document_type: str | None = None,
        location: str | None = None,
        status: str | None = None,
        text: str | None = None,
        limit: int = 100,
    ) -> list[Document]:
        q = self._session.query(Document)
        if document_type:
            q = q.filter(Document.document_type == document_type.upper())
        if location:
            q = q.filter(or_(Document.source_location == location, Document.dest_location == location))
        if status:
            q = q.filter(Document.status == status.upper())
        if text:
            pattern = f"%{text.strip()}%"
            q = q.filter(
                or_(
                    Document.document_number.ilike(pattern),
                    Document.customer_name.ilike(pattern),
                )
            )
        return q.order_by(Document.occurred_at.desc(), Document.issued_at.desc()).limit(limit).all()
