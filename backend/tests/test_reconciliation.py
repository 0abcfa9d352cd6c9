# Overview: Pytest coverage for document issue, edit and cancel reconciliation.

"""
Reconciliation Engine Tests

Covers the issue flow end to end against a real session:
1. Stock effects per document type (SALE, TRANSFER, REFUND)
2. Edits revert the stored version before applying the new one
3. The movement ledger holds exactly one explanation per live document
4. Duplicate numbers are rejected before anything changes
5. Unknown products are skipped and noted, never fatal
6. Cancel restores stock and releases the number
"""

import pytest

from stockmaster.models import (
    DOCUMENT_STATUS_CANCELLED,
    MOVEMENT_ADJUST,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    Customer,
    Document,
    StockMovement,
)
from stockmaster.services.customer_ledger import CustomerLedger
from stockmaster.services.document_registry import DocumentRegistry
from stockmaster.services.document_schemas import DocumentDraft, LineDraft
from stockmaster.services.movement_ledger import MovementLedger
from stockmaster.services.reconciliation import (
    DocumentNotFound,
    DocumentStateError,
    DuplicateDocumentNumber,
    ReconciliationEngine,
    UnknownProductReference,
)
from stockmaster.services.stock_store import StockStore


def sale(doc_id, number, lines, *, source="X", customer="Alice", **extra):
    return DocumentDraft(
        id=doc_id,
        document_type="SALE",
        document_number=number,
        source_location=source,
        customer_name=customer,
        lines=lines,
        **extra,
    )


def transfer(doc_id, number, lines, *, source="X", dest="Y"):
    return DocumentDraft(
        id=doc_id,
        document_type="TRANSFER",
        document_number=number,
        source_location=source,
        dest_location=dest,
        lines=lines,
    )


def line(product, quantity, price=100, **extra):
    return LineDraft(product_id=product.id, sku=product.sku, name=product.name, quantity=quantity, unit_price_cents=price, **extra)


def ledger_rows(engine, number):
    return [(m.location, m.kind, m.quantity_delta) for m in engine.ledger.for_reference(number)]


def snapshot(engine, products, locations=("X", "Y", "Z")):
    stock = {(p.id, loc): engine.stock.get_quantity(p.id, loc) for p in products for loc in locations}
    movements = sorted(
        (m.reference_document_number or "", m.location, m.kind, m.quantity_delta, m.product_id or 0)
        for m in engine.session.query(StockMovement).all()
    )
    spend = {c.name: c.lifetime_spend_cents for c in engine.session.query(Customer).all()}
    return stock, movements, spend


class TestSaleScenario:
    def test_sale_then_edit_quantity(self, db_session, engine, product_a):
        result = engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))

        assert result.created is True
        assert engine.stock.get_quantity(product_a.id, "X") == 5
        assert ledger_rows(engine, "R-1") == [("X", MOVEMENT_OUT, -5)]
        alice = engine.customers.match("Alice")
        assert alice.lifetime_spend_cents == 500
        assert alice.total_visits == 1

        result = engine.issue(sale("doc-r1", "R-1", [line(product_a, 3)]))

        assert result.created is False
        assert result.purged_movements == 1
        assert engine.stock.get_quantity(product_a.id, "X") == 7
        assert ledger_rows(engine, "R-1") == [("X", MOVEMENT_OUT, -3)]
        assert alice.lifetime_spend_cents == 300
        assert alice.total_visits == 1

    def test_document_is_replaced_in_place(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 1), line(product_a, 2)]))

        docs = db_session.query(Document).all()
        assert len(docs) == 1
        assert [l.quantity for l in docs[0].lines] == [1, 2]
        assert docs[0].total_cents == 300

    def test_negative_stock_is_reported_not_blocked(self, db_session, engine, product_a):
        result = engine.issue(sale("doc-r1", "R-1", [line(product_a, 15)]))

        assert engine.stock.get_quantity(product_a.id, "X") == -5
        assert result.has_warnings
        assert [(n.product_id, n.location, n.quantity) for n in result.negative_stock] == [(product_a.id, "X", -5)]

    def test_refund_takes_stock_from_source(self, db_session, engine, product_a):
        draft = DocumentDraft(
            id="doc-v1",
            document_type="REFUND",
            document_number="VAT-1",
            source_location="X",
            customer_name="Tourist",
            lines=[line(product_a, 2)],
            visitor={"passport": "P123", "flight": "MK015"},
        )
        result = engine.issue(draft)

        assert engine.stock.get_quantity(product_a.id, "X") == 8
        assert ledger_rows(engine, "VAT-1") == [("X", MOVEMENT_OUT, -2)]
        assert result.document.visitor["passport"] == "P123"


class TestTransferScenario:
    def test_transfer_moves_stock(self, db_session, engine, product_b):
        engine.issue(transfer("doc-t1", "T-1", [line(product_b, 8)]))

        assert engine.stock.get_quantity(product_b.id, "X") == 12
        assert engine.stock.get_quantity(product_b.id, "Y") == 8
        assert ledger_rows(engine, "T-1") == [("X", MOVEMENT_OUT, -8), ("Y", MOVEMENT_IN, 8)]

    def test_per_line_destination_wins(self, db_session, engine, product_b):
        draft = transfer(
            "doc-t1",
            "T-1",
            [line(product_b, 3), line(product_b, 4, dest_location="Z")],
        )
        engine.issue(draft)

        assert engine.stock.get_quantity(product_b.id, "X") == 13
        assert engine.stock.get_quantity(product_b.id, "Y") == 3
        assert engine.stock.get_quantity(product_b.id, "Z") == 4

    def test_transfer_edit_reverts_both_sides(self, db_session, engine, product_b):
        engine.issue(transfer("doc-t1", "T-1", [line(product_b, 8)]))
        engine.issue(transfer("doc-t1", "T-1", [line(product_b, 2)], dest="Z"))

        assert engine.stock.get_quantity(product_b.id, "X") == 18
        assert engine.stock.get_quantity(product_b.id, "Y") == 0
        assert engine.stock.get_quantity(product_b.id, "Z") == 2
        assert ledger_rows(engine, "T-1") == [("X", MOVEMENT_OUT, -2), ("Z", MOVEMENT_IN, 2)]

    def test_transfer_does_not_touch_customers(self, db_session, engine, product_b):
        draft = transfer("doc-t1", "T-1", [line(product_b, 1)])
        draft.customer_name = "Alice"
        engine.issue(draft)

        assert db_session.query(Customer).count() == 0


class TestDocumentNumbers:
    def test_refund_with_existing_sale_number_is_rejected(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        before = snapshot(engine, [product_a])

        refund = DocumentDraft(
            id="doc-v1",
            document_type="REFUND",
            document_number="  r-1 ",
            source_location="X",
            lines=[line(product_a, 1)],
        )
        with pytest.raises(DuplicateDocumentNumber) as exc:
            engine.issue(refund)

        assert exc.value.existing_id == "doc-r1"
        assert snapshot(engine, [product_a]) == before
        assert engine.registry.find_by_id("doc-v1") is None

    def test_number_change_moves_ledger_reference(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.issue(sale("doc-r1", "R-2", [line(product_a, 4)]))

        assert ledger_rows(engine, "R-1") == []
        assert ledger_rows(engine, "R-2") == [("X", MOVEMENT_OUT, -4)]
        assert engine.stock.get_quantity(product_a.id, "X") == 6
        assert engine.registry.find_by_number("r-1") is None

    def test_edit_may_keep_its_own_number(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.issue(sale("doc-r1", "r-1", [line(product_a, 5)]))

        assert engine.registry.find_by_id("doc-r1").document_number == "r-1"


class TestReconciliationProperties:
    def test_reissue_is_idempotent(self, db_session, engine, product_a, product_b):
        draft_lines = [line(product_a, 2), line(product_b, 3)]
        engine.issue(sale("doc-r1", "R-1", draft_lines))
        first = snapshot(engine, [product_a, product_b])

        engine.issue(sale("doc-r1", "R-1", [line(product_a, 2), line(product_b, 3)]))

        assert snapshot(engine, [product_a, product_b]) == first

    def test_edit_chain_then_cancel_restores_everything(self, db_session, engine, product_a, product_b):
        before_stock, before_movements, _ = snapshot(engine, [product_a, product_b])

        engine.issue(transfer("doc-t1", "T-1", [line(product_a, 4)]))
        engine.issue(transfer("doc-t1", "T-1", [line(product_b, 6), line(product_a, 1, dest_location="Z")]))
        engine.issue(transfer("doc-t1", "T-1B", [line(product_b, 1)], dest="Z"))
        engine.cancel("doc-t1", reason="entered twice")

        after_stock, after_movements, _ = snapshot(engine, [product_a, product_b])
        assert after_stock == before_stock
        assert after_movements == before_movements

    def test_ledger_matches_stock_after_each_issue(self, db_session, engine, product_a, product_b):
        versions = [
            [line(product_a, 1)],
            [line(product_a, 3), line(product_b, 2)],
            [line(product_b, 5)],
        ]
        for lines in versions:
            engine.issue(sale("doc-r1", "R-1", lines))
            for product in (product_a, product_b):
                ledger_total = sum(
                    m.quantity_delta
                    for m in engine.ledger.query(product_id=product.id, location="X")
                )
                assert ledger_total == engine.stock.get_quantity(product.id, "X")


class TestUnknownProducts:
    def test_unknown_line_is_skipped_and_noted(self, db_session, engine, product_a):
        ghost = LineDraft(product_id=99999, sku="GHOST", name="Ghost item", quantity=2, unit_price_cents=50)
        result = engine.issue(sale("doc-r1", "R-1", [line(product_a, 1), ghost]))

        assert [l.sku for l in result.skipped_lines] == ["GHOST"]
        assert engine.stock.get_quantity(product_a.id, "X") == 9
        rows = ledger_rows(engine, "R-1")
        assert ("X", MOVEMENT_OUT, -1) in rows
        assert ("X", MOVEMENT_ADJUST, 0) in rows
        stored = engine.registry.find_by_id("doc-r1")
        assert [l.applied for l in stored.lines] == [True, False]

    def test_edit_after_skipped_line_reverts_only_applied(self, db_session, engine, product_a):
        ghost = LineDraft(product_id=99999, quantity=2)
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 1), ghost]))
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 1)]))

        assert engine.stock.get_quantity(product_a.id, "X") == 9
        assert ledger_rows(engine, "R-1") == [("X", MOVEMENT_OUT, -1)]

    def test_direct_adjust_rejects_unknown_product(self, db_session, engine):
        with pytest.raises(UnknownProductReference):
            engine.adjust(99999, "X", 5, note="count")


class TestCancel:
    def test_cancel_restores_stock_and_spend(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        doc = engine.cancel("doc-r1", reason="customer changed mind")

        assert doc.status == DOCUMENT_STATUS_CANCELLED
        assert doc.cancellation_reason == "customer changed mind"
        assert engine.stock.get_quantity(product_a.id, "X") == 10
        assert ledger_rows(engine, "R-1") == []
        assert engine.customers.match("Alice").lifetime_spend_cents == 0

    def test_cancelled_number_can_be_reused(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.cancel("doc-r1")

        result = engine.issue(sale("doc-r9", "R-1", [line(product_a, 2)]))

        assert result.created is True
        assert engine.stock.get_quantity(product_a.id, "X") == 8
        assert ledger_rows(engine, "R-1") == [("X", MOVEMENT_OUT, -2)]

    def test_cancel_twice_is_rejected(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.cancel("doc-r1")

        with pytest.raises(DocumentStateError):
            engine.cancel("doc-r1")
        assert engine.stock.get_quantity(product_a.id, "X") == 10

    def test_cancel_unknown_document(self, db_session, engine):
        with pytest.raises(DocumentNotFound):
            engine.cancel("nope")

    def test_reissuing_cancelled_document_applies_fresh(self, db_session, engine, product_a):
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 5)]))
        engine.cancel("doc-r1")
        result = engine.issue(sale("doc-r1", "R-1", [line(product_a, 4)]))

        assert result.created is False
        assert result.purged_movements == 0
        assert engine.stock.get_quantity(product_a.id, "X") == 6
        assert engine.customers.match("Alice").lifetime_spend_cents == 400
        assert engine.customers.match("Alice").total_visits == 1


class TestManualOperations:
    def test_adjust_writes_matching_movement(self, db_session, engine, product_a):
        movement = engine.adjust(product_a.id, "Y", -3, note="breakage")

        assert movement.kind == MOVEMENT_ADJUST
        assert movement.quantity_delta == -3
        assert movement.reference_document_number is None
        assert engine.stock.get_quantity(product_a.id, "Y") == -3

    def test_set_quantity_records_applied_delta(self, db_session, engine, product_a):
        movement = engine.set_quantity(product_a.id, "X", 4, note="count")

        assert movement.quantity_delta == -6
        assert engine.stock.get_quantity(product_a.id, "X") == 4

    def test_set_quantity_rejects_unknown_product(self, db_session, engine):
        with pytest.raises(UnknownProductReference):
            engine.set_quantity(424242, "X", 3)

    def test_annotate_defaults_to_master(self, db_session, engine, product_a):
        movement = engine.annotate(product_a, "Price changed: 1.00 -> 2.00")

        assert movement.location == "Master"
        assert movement.quantity_delta == 0
        assert engine.stock.get_quantity(product_a.id, "Master") == 0


class _RecordingLock:
    """Context-manager lock stand-in that logs every acquire and release."""

    def __init__(self, events):
        self.events = events

    def __enter__(self):
        self.events.append("acquire")
        return self

    def __exit__(self, *exc_info):
        self.events.append("release")
        return False


def _recording_engine(db_session, events):
    return ReconciliationEngine(
        StockStore(db_session),
        MovementLedger(db_session),
        DocumentRegistry(db_session),
        CustomerLedger(db_session),
        session=db_session,
        lock=_RecordingLock(events),
        persist=lambda: events.append("persist"),
    )


class TestUnitOfWork:
    def test_commit_happens_before_lock_release(self, db_session, product_a):
        events = []
        engine = _recording_engine(db_session, events)

        with engine.unit_of_work():
            engine.issue(sale("doc-r1", "R-1", [line(product_a, 1)]))

        assert events[0] == "acquire"
        assert events[-2:] == ["persist", "release"]

    def test_nothing_is_saved_when_the_block_raises(self, db_session, product_a):
        events = []
        engine = _recording_engine(db_session, events)
        engine.issue(sale("doc-r1", "R-1", [line(product_a, 1)]))
        events.clear()

        with pytest.raises(DuplicateDocumentNumber):
            with engine.unit_of_work():
                engine.issue(sale("doc-r2", "R-1", [line(product_a, 1)]))

        assert "persist" not in events
        assert events[-1] == "release"

    def test_issued_number_is_committed_inside_the_unit(self, db_session, engine, product_a):
        with engine.unit_of_work():
            engine.issue(sale("doc-r1", "R-1", [line(product_a, 1)]))

        # rollback only discards uncommitted work
        db_session.rollback()
        assert engine.registry.find_by_number("R-1", exclude_id="doc-r2").id == "doc-r1"
