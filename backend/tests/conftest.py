"""
Pytest fixtures for Mostrador backend tests.

Provides an in-memory database, a fresh app context per test, the HTTP
test client and small factories for catalog, credit and shift data.
"""

import pytest
from flask import g

from mostrador import create_app
from mostrador.extensions import db
from mostrador.services import catalog_service, fiado_service, shift_service
from mostrador.services.cart_service import CartLine
from mostrador.services.store import STORE_EXTENSION_KEY, RowStore, StorageError


ADMIN_PASSWORD = "test-admin"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'REPORT_TIMEZONE': 'UTC',
        'ATOMIC_POSTING': False,
        'FALLBACK_ON_FETCH_ERROR': True,
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
    """Fresh app context (and ledger cache) over an emptied database for each test."""
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
def make_product(db_session):
    """Factory: create a product through the catalog service."""
    def _make(name="Pan amasado", price=1000, stock=10, min_stock=5, category="General", barcode=None):
        return catalog_service.create_product({
            "name": name,
            "category": category,
            "price": price,
            "stock": stock,
            "min_stock": min_stock,
            "barcode": barcode,
        })
    return _make


@pytest.fixture(scope='function')
def make_client(db_session):
    """Factory: create a credit client (authorized unless told otherwise)."""
    def _make(name="Rosa Fuentes", credit_limit=10000, authorized=True):
        return fiado_service.create_client(name, credit_limit, authorized=authorized)
    return _make


@pytest.fixture(scope='function')
def open_shift(db_session):
    """Ana's day shift with a 50000 float."""
    return shift_service.open_shift("Ana", "day", 50000)


@pytest.fixture(scope='function')
def lines():
    """Build cart lines from (product, quantity) pairs."""
    def _lines(*pairs):
        return [CartLine(product_id=product.id, quantity=quantity) for product, quantity in pairs]
    return _lines


@pytest.fixture(scope='function')
def admin_client(client, db_session):
    """Test client whose terminal session has the admin gate unlocked."""
    resp = client.post("/api/admin/unlock", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client


class UnreadableStore(RowStore):
    """Row store whose reads of the given collections fail; writes still work."""

    def __init__(self, *collections):
        self.collections = set(collections)

    def fetch_all(self, collection, order_by=None, descending=False):
        if collection in self.collections:
            raise StorageError("connection reset by peer", collection=collection, operation="fetch_all")
        return super().fetch_all(collection, order_by=order_by, descending=descending)


@pytest.fixture(scope='function')
def unreadable(app, monkeypatch, db_session):
    """Make reads of some collections fail from here on (cache dropped)."""
    def _fail(*collections):
        monkeypatch.setitem(app.extensions, STORE_EXTENSION_KEY, UnreadableStore(*collections))
        g.pop("ledger_cache", None)
    return _fail
