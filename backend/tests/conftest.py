"""
Pytest fixtures for mshop backend tests.

Provides the application bound to an in-memory database, per-test table
cleanup, and small factories for catalog rows.
"""

import os
import tempfile

import pytest

from mshop import create_app
from mshop.extensions import db
from mshop.models import Customer, Product, Purchase
from mshop.services.ledger_service import ensure_ledger_heads


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'LEDGER_ALLOW_NEGATIVE_BALANCE': True,
    'LINK_CASH_TRANSFERS_TO_MAIN_LEDGER': False,
    'DB_RETRY_ATTEMPTS': 3,
    'DB_RETRY_BACKOFF_SECONDS': 0,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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

        ensure_ledger_heads()
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def file_app():
    """
    Application on a temporary SQLite file.

    Threaded tests need it: the in-memory database is a single shared
    connection, so it cannot show real lock contention between writers.
    """
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'DB_RETRY_ATTEMPTS': 5,
        'DB_RETRY_BACKOFF_SECONDS': 0.05,
    })

    with app.app_context():
        db.create_all()
        ensure_ledger_heads()
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()


def make_product(session, **overrides) -> Product:
    """Insert a product directly (bypassing purchases) for test setup."""
    data = {
        'name': 'Charger',
        'purchase_price_cents': 5000,
        'selling_price_cents': 8000,
        'is_serialized': False,
        'stock': 0,
    }
    data.update(overrides)
    product = Product(**data)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session):
    """Non-serialized product: cost 50.00, price 80.00, no stock."""
    return make_product(db_session)


@pytest.fixture(scope='function')
def stocked_product(db_session):
    """The cash-sale product: stock 10 at cost 50.00, price 80.00."""
    from mshop.services.purchase_service import record_purchase

    p = make_product(db_session, name='USB Cable')
    record_purchase(product_id=p.id, quantity=10, unit_cost_cents=5000)
    return p


@pytest.fixture(scope='function')
def phone(db_session):
    """Serialized product."""
    return make_product(
        db_session,
        name='Phone X',
        brand='Acme',
        is_serialized=True,
        purchase_price_cents=300000,
        selling_price_cents=400000,
    )


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name='Mona Adel', phone='0100000000', address='Cairo', national_id='29801011234567')
    db_session.add(c)
    db_session.commit()
    return c


def seed_purchase(session, product, quantity) -> Purchase:
    """A bare purchase document for unit back-references in store-level tests."""
    purchase = Purchase(
        product_id=product.id,
        quantity=quantity,
        unit_cost_cents=product.purchase_price_cents,
        total_cost_cents=quantity * product.purchase_price_cents,
    )
    session.add(purchase)
    session.commit()
    return purchase
