"""
Pytest fixtures for StockMaster backend tests.

Provides test database setup, a test client, and catalog/engine fixtures.
"""

import pytest

from stockmaster import create_app
from stockmaster.extensions import db
from stockmaster.models import Product
from stockmaster.services.reconciliation import build_engine


TEST_LOCATIONS = ("Master", "X", "Y", "Z")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_LOCATIONS': TEST_LOCATIONS,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def engine(db_session):
    """Reconciliation engine over the test session."""
    return build_engine(db_session)


@pytest.fixture(scope='function')
def make_product(engine):
    """Factory: create a product and book its starting stock as IN movements."""
    def _make(*, sku, name, price_cents=100, stocks=None, min_quantity=5, category="Other"):
        product = Product(
            sku=sku,
            name=name,
            price_cents=price_cents,
            min_quantity=min_quantity,
            category=category,
        )
        engine.session.add(product)
        engine.session.flush()
        for location, quantity in (stocks or {}).items():
            engine.receive(product.id, location, quantity, note="Opening stock")
        engine.session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product_a(make_product):
    """Product with 10 units at X."""
    return make_product(sku="PROD-A-001", name="Product A", price_cents=100, stocks={"X": 10})


@pytest.fixture(scope='function')
def product_b(make_product):
    """Product with 20 units at X and none at Y."""
    return make_product(sku="PROD-B-001", name="Product B", price_cents=250, stocks={"X": 20})
