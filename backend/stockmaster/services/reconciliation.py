# backend/stockmaster/services/reconciliation.py
"""
Document reconciliation engine.

WHY: Documents (sale receipts, transfer notes, VAT refund forms) can be
edited after they were issued. Stock and the movement ledger must then look
as if only the latest version had ever been issued: no double deductions, no
orphaned history rows.

ISSUE FLOW (one logical unit, serialized by the engine lock):
1. Uniqueness: another non-cancelled document with the same number
   (trimmed, case-insensitive, any type) -> DuplicateDocumentNumber.
   Nothing has been touched at that point.
2. Look up the existing version by id.
3. Revert it: invert every applied line, purge its movements by number.
4. Apply the new version: one movement per stock effect, tagged with the
   new number. Lines referencing unknown products are skipped and noted.
5. Customer ledger: spend moves by (new total - old total).
6. Registry upsert.

The engine is the only writer of stock movements. Its operations never
commit. Callers wrap them in unit_of_work(), which keeps the engine lock
held until concurrency.persist_changes has saved the result, so a number
that passed the uniqueness check is committed before anyone else checks.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import (
    DOCUMENT_TYPE_TRANSFER,
    MOVEMENT_ADJUST,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    Document,
    Product,
    StockMovement,
)
from .concurrency import persist_changes
from .customer_ledger import CustomerLedger
from .document_registry import DocumentRegistry
from .document_schemas import DocumentDraft, LineDraft
from .movement_ledger import MovementLedger
from .stock_store import StockStore
from stockmaster.time_utils import utcnow

logger = logging.getLogger(__name__)


class DuplicateDocumentNumber(Exception):
    """Raised when a document number is already used by another live document."""

    def __init__(self, document_number: str, existing_id: str):
        super().__init__(f"Document number already in use: {document_number}")
        self.document_number = document_number
        self.existing_id = existing_id


class UnknownProductReference(Exception):
    """Raised when a direct stock operation names a product that does not exist."""


class DocumentNotFound(Exception):
    """Raised when a document id does not resolve."""


class DocumentStateError(Exception):
    """Raised when a document is not in a state that allows the operation."""


@dataclass
class NegativeStock:
    product_id: int
    location: str
    quantity: int

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "location": self.location, "quantity": self.quantity}


@dataclass
class IssueResult:
    document: Document
    created: bool
    purged_movements: int = 0
    movements: list[StockMovement] = field(default_factory=list)
    skipped_lines: list[LineDraft] = field(default_factory=list)
    negative_stock: list[NegativeStock] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.skipped_lines or self.negative_stock)

    def to_dict(self) -> dict:
        return {
            "document": self.document.to_dict(),
            "created": self.created,
            "purged_movements": self.purged_movements,
            "movements": [m.to_dict() for m in self.movements],
            "skipped_lines": [
                {"product_id": line.product_id, "sku": line.sku, "name": line.name, "quantity": line.quantity}
                for line in self.skipped_lines
            ],
            "negative_stock": [n.to_dict() for n in self.negative_stock],
        }


class ReconciliationEngine:
    def __init__(
        self,
        stock: StockStore,
        ledger: MovementLedger,
        registry: DocumentRegistry,
        customers: CustomerLedger,
        *,
        session=None,
        lock=None,
        persist=None,
        master_location: str = "Master",
    ):
        self.stock = stock
        self.ledger = ledger
        self.registry = registry
        self.customers = customers
        self._session = session if session is not None else db.session
        self._lock = lock if lock is not None else threading.RLock()
        self._persist = persist
        self.master_location = master_location

    @property
    def session(self):
        return self._session

    @contextmanager
    def unit_of_work(self):
        """
        Hold the engine lock across a block of operations and their commit.

        Other sessions only see committed rows, so the save runs before the
        lock is released. Nothing is saved when the block raises.
        """
        with self._lock:
            yield self
            if self._persist is not None:
                self._persist()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _product(self, product_id: int | None) -> Product | None:
        if product_id is None:
            return None
        return self._session.get(Product, product_id)

    def _movement(self, product, *, product_id, sku, name, location, kind, delta, when, reference, note=None):
        return StockMovement(
            product_id=product.id if product is not None else product_id,
            sku=product.sku if product is not None else (sku or ""),
            product_name=product.name if product is not None else (name or ""),
            location=location,
            kind=kind,
            quantity_delta=delta,
            occurred_at=when,
            reference_document_number=reference,
            note=note,
        )

    def _revert(self, existing: Document) -> int:
        """Invert the applied lines of a stored version and purge its movements."""
        for line in existing.lines:
            if not line.applied:
                continue
            if self._product(line.product_id) is None:
                # product deleted since issue; its stock rows went with it
                logger.warning(
                    "Revert of %s: product %s no longer exists, nothing to restore",
                    existing.document_number,
                    line.product_id,
                )
                continue
            self.stock.adjust(line.product_id, existing.source_location, line.quantity)
            dest = line.dest_location or existing.dest_location
            if existing.document_type == DOCUMENT_TYPE_TRANSFER and dest:
                self.stock.adjust(line.product_id, dest, -line.quantity)

        purged = self.ledger.purge_by_reference(existing.document_number)
        logger.info("Reverted document %s (%s), purged %d movements", existing.id, existing.document_number, purged)
        return purged

    def _apply(self, draft: DocumentDraft) -> tuple[list[StockMovement], list[bool], list[LineDraft], set]:
        movements: list[StockMovement] = []
        applied: list[bool] = []
        skipped: list[LineDraft] = []
        touched: set[tuple[int, str]] = set()

        for line in draft.lines:
            product = self._product(line.product_id)
            if product is None:
                logger.warning(
                    "Document %s: skipping line for unknown product %s (%s)",
                    draft.document_number,
                    line.product_id,
                    line.name or line.sku,
                )
                movements.append(
                    self._movement(
                        None,
                        product_id=line.product_id,
                        sku=line.sku,
                        name=line.name,
                        location=draft.source_location,
                        kind=MOVEMENT_ADJUST,
                        delta=0,
                        when=draft.occurred_at,
                        reference=draft.document_number,
                        note="Skipped: unknown product reference",
                    )
                )
                applied.append(False)
                skipped.append(line)
                continue

            self.stock.adjust(product.id, draft.source_location, -line.quantity)
            touched.add((product.id, draft.source_location))
            movements.append(
                self._movement(
                    product,
                    product_id=product.id,
                    sku=line.sku,
                    name=line.name,
                    location=draft.source_location,
                    kind=MOVEMENT_OUT,
                    delta=-line.quantity,
                    when=draft.occurred_at,
                    reference=draft.document_number,
                )
            )

            dest = draft.destination_for(line)
            if dest:
                self.stock.adjust(product.id, dest, line.quantity)
                touched.add((product.id, dest))
                movements.append(
                    self._movement(
                        product,
                        product_id=product.id,
                        sku=line.sku,
                        name=line.name,
                        location=dest,
                        kind=MOVEMENT_IN,
                        delta=line.quantity,
                        when=draft.occurred_at,
                        reference=draft.document_number,
                    )
                )
            applied.append(True)

        self.ledger.record_batch(movements)
        return movements, applied, skipped, touched

    def _negative(self, touched) -> list[NegativeStock]:
        found = []
        for product_id, location in sorted(touched):
            quantity = self.stock.get_quantity(product_id, location)
            if quantity < 0:
                found.append(NegativeStock(product_id=product_id, location=location, quantity=quantity))
        return found

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def issue(self, draft: DocumentDraft) -> IssueResult:
        """Issue a new document or re-issue an edited one."""
        with self._lock:
            clash = self.registry.find_by_number(draft.document_number, exclude_id=draft.id)
            if clash is not None:
                raise DuplicateDocumentNumber(draft.document_number, clash.id)

            existing = self.registry.find_by_id(draft.id)
            live = existing if existing is not None and not existing.is_cancelled else None

            purged = self._revert(live) if live is not None else 0
            movements, applied, skipped, touched = self._apply(draft)

            # live still holds the previous version until upsert runs
            self.customers.record_document(draft, live, first_issue=existing is None)

            doc, _ = self.registry.upsert(draft, applied_lines=applied)
            negative = self._negative(touched)
            for condition in negative:
                logger.warning(
                    "Negative stock after %s: product %s at %s is %d",
                    draft.document_number,
                    condition.product_id,
                    condition.location,
                    condition.quantity,
                )

            return IssueResult(
                document=doc,
                created=existing is None,
                purged_movements=purged,
                movements=movements,
                skipped_lines=skipped,
                negative_stock=negative,
            )

    def cancel(self, document_id: str, reason: str | None = None) -> Document:
        """Revert a document's stock and customer effect and mark it CANCELLED."""
        with self._lock:
            doc = self.registry.find_by_id(document_id)
            if doc is None:
                raise DocumentNotFound(f"Document not found: {document_id}")
            if doc.is_cancelled:
                raise DocumentStateError(f"Document {doc.document_number} is already cancelled")

            self._revert(doc)
            self.customers.reverse_document(doc)
            self.registry.mark_cancelled(doc, reason)
            logger.info("Cancelled document %s (%s)", doc.id, doc.document_number)
            return doc

    def adjust(self, product_id: int, location: str, delta: int, note: str | None = None) -> StockMovement:
        """Manual stock correction with its own ADJUST movement."""
        with self._lock:
            product = self._product(product_id)
            if product is None:
                raise UnknownProductReference(f"Product not found: {product_id}")
            self.stock.adjust(product.id, location, delta)
            movement = self._movement(
                product,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                location=location,
                kind=MOVEMENT_ADJUST,
                delta=delta,
                when=utcnow(),
                reference=None,
                note=note,
            )
            return self.ledger.record(movement)

    def set_quantity(self, product_id: int, location: str, quantity: int, note: str | None = None) -> StockMovement:
        """Override the quantity at a location; the ADJUST row carries the delta applied."""
        with self._lock:
            product = self._product(product_id)
            if product is None:
                raise UnknownProductReference(f"Product not found: {product_id}")
            delta = self.stock.set_quantity(product.id, location, quantity)
            movement = self._movement(
                product,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                location=location,
                kind=MOVEMENT_ADJUST,
                delta=delta,
                when=utcnow(),
                reference=None,
                note=note,
            )
            return self.ledger.record(movement)

    def receive(self, product_id: int, location: str, quantity: int, note: str | None = None) -> StockMovement:
        """Stock arriving outside any document (new product, import)."""
        with self._lock:
            product = self._product(product_id)
            if product is None:
                raise UnknownProductReference(f"Product not found: {product_id}")
            self.stock.adjust(product.id, location, quantity)
            movement = self._movement(
                product,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                location=location,
                kind=MOVEMENT_IN,
                delta=quantity,
                when=utcnow(),
                reference=None,
                note=note,
            )
            return self.ledger.record(movement)

    def annotate(self, product: Product, note: str, location: str | None = None) -> StockMovement:
        """Zero-delta history row (price, promo and offer changes)."""
        movement = self._movement(
            product,
            product_id=product.id,
            sku=product.sku,
            name=product.name,
            location=location or self.master_location,
            kind=MOVEMENT_ADJUST,
            delta=0,
            when=utcnow(),
            reference=None,
            note=note[:255],
        )
        return self.ledger.record(movement)


def build_engine(session=None) -> ReconciliationEngine:
    """Engine over the request's session, sharing the app-wide lock."""
    session = session if session is not None else db.session
    return ReconciliationEngine(
        StockStore(session),
        MovementLedger(session),
        DocumentRegistry(session),
        CustomerLedger(session, guest_name=current_app.config.get("GUEST_CUSTOMER_NAME", "Guest")),
        session=session,
        lock=current_app.extensions.get("reconciliation_lock"),
        persist=persist_changes,
        master_location=current_app.config.get("MASTER_LOCATION", "Master"),
    )
