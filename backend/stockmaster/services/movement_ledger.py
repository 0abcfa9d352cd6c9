# Overview: Movement ledger; audit-readable trail of every stock change.

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from ..models import StockMovement
"""
Movement Ledger Invariants (authoritative)

- Append-mostly: rows are inserted, never updated.
- Storage order is insertion order. Presentation order is the caller's
  concern (by convention newest first, see recent()).
- quantity_delta is signed and matches what the stock store applied.
- The single removal path is purge_by_reference(). It exists so a document
  edit leaves one coherent explanation per document identity instead of a
  trail of compensating rows. Superseded versions are therefore NOT kept.
- Date range filters are inclusive on both ends.
"""


class MovementLedger:
    def __init__(self, session: Session):
        self._session = session

    def record(self, entry: StockMovement) -> StockMovement:
        self._session.add(entry)
        self._session.flush()
        return entry

    def record_batch(self, entries: Iterable[StockMovement]) -> list[StockMovement]:
        rows = list(entries)
        # add_all keeps caller order, so ids follow it too
        self._session.add_all(rows)
        self._session.flush()
        return rows

    def purge_by_reference(self, reference_document_number: str | None) -> int:
        """
        Remove every row tagged with exactly this document number.

        Used only when reverting a document version. Returns the number of
        rows removed; a blank reference removes nothing.
        """
        if not reference_document_number:
            return 0
        self._session.flush()
        removed = (
            self._session.query(StockMovement)
            .filter(StockMovement.reference_document_number == reference_document_number)
            .delete(synchronize_session="fetch")
        )
        return int(removed or 0)

    def query(
        self,
        *,
        product_id: int | None = None,
        location: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        text: str | None = None,
    ) -> Query:
        """
        Filtered, lazy view over the ledger.

        The returned query re-executes on each iteration, so it can be
        consumed more than once. No ordering is applied.
        """
        q = self._session.query(StockMovement)
        if product_id is not None:
            q = q.filter(StockMovement.product_id == product_id)
        if location:
            q = q.filter(StockMovement.location == location)
        if date_from is not None:
            q = q.filter(StockMovement.occurred_at >= date_from)
        if date_to is not None:
            q = q.filter(StockMovement.occurred_at <= date_to)
        if text:
            pattern = f"%{text.strip()}%"
            q = q.filter(
                or_(
                    StockMovement.product_name.ilike(pattern),
                    StockMovement.sku.ilike(pattern),
                    StockMovement.reference_document_number.ilike(pattern),
                )
            )
        return q

    def recent(self, *, limit: int = 200, **filters) -> list[StockMovement]:
        return (
            self.query(**filters)
            .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
            .limit(limit)
            .all()
        )

    def for_reference(self, reference_document_number: str) -> list[StockMovement]:
        """Exact-match rows for one document number, in insertion order."""
        return (
            self._session.query(StockMovement)
            .filter(StockMovement.reference_document_number == reference_document_number)
            .order_by(StockMovement.id)
            .all()
        )
