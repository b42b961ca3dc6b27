"""
Pytest fixtures for costbook backend tests.

Provides test database setup, the seeded reference chart, a small item
catalogue and test client.
"""

from decimal import Decimal

import pytest
from costbook import create_app
from costbook.extensions import db
from costbook.models import Currency, Item, ItemDetail, StockLocation, Supplier, Unit, User
from costbook.models.inventory import PURCHASE
from costbook.services import inventory_service
from costbook.services.seed_service import seed_reference_data


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
def books(db_session):
    """Seed currencies, categories, the reference chart and the admin user."""
    seed_reference_data()
    return db_session


@pytest.fixture(scope='function')
def user(books):
    return books.query(User).filter_by(username="admin").one()


@pytest.fixture(scope='function')
def headers(user):
    return {"X-User-Id": str(user.id)}


@pytest.fixture(scope='function')
def usd(books):
    return books.query(Currency).filter_by(code="USD").one()


@pytest.fixture(scope='function')
def khr(books):
    return books.query(Currency).filter_by(code="KHR").one()


@pytest.fixture(scope='function')
def location(books):
    return books.query(StockLocation).filter_by(name="Main Warehouse").one()


@pytest.fixture(scope='function')
def supplier(books):
    supplier = Supplier(name="Phnom Penh Wholesale")
    books.add(supplier)
    books.commit()
    return supplier


@pytest.fixture(scope='function')
def catalogue(books):
    """
    Two items:
    - Widget: base unit Piece, sold as WID-PC (x1) or WID-BX (box of 12)
    - Gadget: base unit Piece, sold as GAD-PC (x1)
    """
    piece = books.query(Unit).filter_by(name="Piece").one()
    box = Unit(name="Box")
    books.add(box)
    books.flush()

    widget = Item(code="WID", name="Widget", base_unit_id=piece.id)
    gadget = Item(code="GAD", name="Gadget", base_unit_id=piece.id)
    books.add_all([widget, gadget])
    books.flush()

    books.add_all([
        ItemDetail(code="WID-PC", item_id=widget.id, unit_id=piece.id, conversion_factor=1),
        ItemDetail(code="WID-BX", item_id=widget.id, unit_id=box.id, conversion_factor=12),
        ItemDetail(code="GAD-PC", item_id=gadget.id, unit_id=piece.id, conversion_factor=1),
    ])
    books.commit()
    return {"widget": widget, "gadget": gadget, "piece": piece, "box": box}


@pytest.fixture(scope='function')
def receive_stock(user):
    """Helper: book a Purchase movement directly (no journal page)."""
    def _receive(item, qty: int, cost, unit=None):
        return inventory_service.record_movement(
            item_id=item.id,
            transaction_type=PURCHASE,
            quantity=qty,
            unit_id=(unit or item.base_unit).id,
            user_id=user.id,
            cost_per_base_unit=Decimal(str(cost)),
        )
    return _receive
