# Overview: Pytest coverage for the stock store and movement ledger.

from datetime import datetime, timedelta

from stockmaster.models import MOVEMENT_ADJUST, MOVEMENT_IN, MOVEMENT_OUT, Product, StockMovement
from stockmaster.services.movement_ledger import MovementLedger
from stockmaster.services.stock_store import StockStore


def _product(db_session, sku="SKU-1", name="Linen Shirt"):
    product = Product(sku=sku, name=name, price_cents=1000)
    db_session.add(product)
    db_session.flush()
    return product


def _movement(product, location="X", kind=MOVEMENT_IN, delta=1, ref=None, when=None, name=None):
    return StockMovement(
        product_id=product.id,
        sku=product.sku,
        product_name=name or product.name,
        location=location,
        kind=kind,
        quantity_delta=delta,
        reference_document_number=ref,
        occurred_at=when or datetime(2026, 3, 1, 12, 0),
    )


class TestStockStore:
    def test_missing_level_reads_zero(self, db_session):
        store = StockStore(db_session)
        product = _product(db_session)

        assert store.get_quantity(product.id, "X") == 0
        assert store.get_quantity(12345, "Nowhere") == 0

    def test_adjust_creates_and_accumulates(self, db_session):
        store = StockStore(db_session)
        product = _product(db_session)

        assert store.adjust(product.id, "X", 5) == 5
        assert store.adjust(product.id, "X", -8) == -3
        assert product.stocks == {"X": -3}

    def test_adjust_touches_last_updated(self, db_session):
        store = StockStore(db_session)
        product = _product(db_session)
        product.last_updated = datetime(2020, 1, 1)
        db_session.flush()

        store.adjust(product.id, "X", 1)

        assert product.last_updated > datetime(2020, 1, 1)

    def test_aggregate_and_set_quantity(self, db_session):
        store = StockStore(db_session)
        product = _product(db_session)
        store.adjust(product.id, "X", 4)
        store.adjust(product.id, "Y", 6)

        assert store.aggregate(product.id) == 10
        assert store.set_quantity(product.id, "Y", 1) == -5
        assert store.aggregate(product.id) == 5
        assert product.stocks == {"X": 4, "Y": 1}

    def test_levels_at_location(self, db_session):
        store = StockStore(db_session)
        shirt = _product(db_session)
        cap = _product(db_session, sku="CAP-9", name="Canvas Cap")
        store.adjust(shirt.id, "X", 3)
        store.adjust(cap.id, "X", 0)
        store.adjust(cap.id, "Y", 2)

        assert [l.product_id for l in store.levels_at("X")] == [shirt.id, cap.id]
        assert [l.product_id for l in store.levels_at("X", nonzero=True)] == [shirt.id]

    def test_negative_levels(self, db_session):
        store = StockStore(db_session)
        product = _product(db_session)
        store.adjust(product.id, "X", -2)
        store.adjust(product.id, "Y", 2)

        rows = store.negative_levels()
        assert [(r.location, r.quantity) for r in rows] == [("X", -2)]


class TestMovementLedger:
    def test_batch_keeps_caller_order(self, db_session):
        ledger = MovementLedger(db_session)
        product = _product(db_session)

        ledger.record_batch([
            _movement(product, kind=MOVEMENT_OUT, delta=-2, ref="R-1"),
            _movement(product, location="Y", kind=MOVEMENT_IN, delta=2, ref="R-1"),
        ])

        rows = ledger.for_reference("R-1")
        assert [(m.location, m.quantity_delta) for m in rows] == [("X", -2), ("Y", 2)]

    def test_purge_is_exact_match(self, db_session):
        ledger = MovementLedger(db_session)
        product = _product(db_session)
        ledger.record_batch([
            _movement(product, ref="R-1"),
            _movement(product, ref="R-1"),
            _movement(product, ref="R-10"),
            _movement(product, ref=None),
        ])

        assert ledger.purge_by_reference("R-1") == 2
        assert ledger.for_reference("R-1") == []
        assert len(ledger.for_reference("R-10")) == 1
        assert ledger.query().count() == 2

    def test_purge_blank_reference_removes_nothing(self, db_session):
        ledger = MovementLedger(db_session)
        product = _product(db_session)
        ledger.record(_movement(product, ref=None))

        assert ledger.purge_by_reference(None) == 0
        assert ledger.purge_by_reference("") == 0
        assert ledger.query().count() == 1

    def test_query_filters_and_is_reiterable(self, db_session):
        ledger = MovementLedger(db_session)
        shirt = _product(db_session)
        cap = _product(db_session, sku="CAP-9", name="Canvas Cap")
        day = datetime(2026, 3, 1, 12, 0)
        ledger.record_batch([
            _movement(shirt, when=day, ref="R-1"),
            _movement(shirt, location="Y", when=day + timedelta(days=1)),
            _movement(cap, when=day + timedelta(days=2), kind=MOVEMENT_ADJUST, delta=0),
        ])

        q = ledger.query(text="linen")
        assert len(list(q)) == 2
        assert len(list(q)) == 2

        assert ledger.query(text="cap-9").count() == 1
        assert ledger.query(text="r-1").count() == 1
        assert ledger.query(product_id=shirt.id, location="Y").count() == 1
        assert ledger.query(date_from=day + timedelta(days=1), date_to=day + timedelta(days=2)).count() == 2

    def test_recent_is_newest_first(self, db_session):
        ledger = MovementLedger(db_session)
        product = _product(db_session)
        day = datetime(2026, 3, 1)
        ledger.record_batch([
            _movement(product, when=day, delta=1),
            _movement(product, when=day + timedelta(hours=1), delta=2),
        ])

        assert [m.quantity_delta for m in ledger.recent(limit=10)] == [2, 1]
