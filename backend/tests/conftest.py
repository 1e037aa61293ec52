"""
Pytest fixtures for RepairDesk backend tests.

Provides test database setup, two isolated stores, item/ticket factories
and a test client that sends the store header.
"""

import pytest
from repairdesk import create_app
from repairdesk.extensions import db
from repairdesk.models import Store, InventoryItem
from repairdesk.services import ticket_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_WARRANTY_PERIOD_DAYS': 30,
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
def store_a(db_session):
    """Create Store A (first tenant)."""
    store = Store(name="Store A", code="A1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    """Create Store B (second tenant)."""
    store = Store(name="Store B", code="B1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for inventory items with a given on-hand quantity."""
    def _make(store, name="Screen", quantity=10, sku=None, min_quantity=0, **extra):
        item = InventoryItem(
            store_id=store.id,
            name=name,
            sku=sku,
            current_quantity=quantity,
            min_quantity=min_quantity,
            **extra,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def make_ticket(db_session):
    """Factory for tickets created through the intake service."""
    def _make(store, email="jane@example.com", name="Jane Doe", **fields):
        patch = {
            "customer_name": name,
            "customer_email": email,
            "customer_phone": fields.pop("customer_phone", "555-0100"),
            "device_type": fields.pop("device_type", "Phone"),
            "issue_description": fields.pop("issue_description", "Cracked screen"),
        }
        patch.update(fields)
        return ticket_service.create_ticket(store.id, patch)
    return _make
