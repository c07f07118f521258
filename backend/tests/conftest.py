"""
Pytest fixtures for stock ledger tests.

Provides test database setup, catalog fixtures, a stock record factory and a
test client.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Location, Product, Variant
from stockledger.validation import CreateStockRecordRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUDIT_ASYNC': False,
        'LEDGER_RETRY_BACKOFF_SECONDS': 0,
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
def services(app):
    return app.extensions["stockledger"]


@pytest.fixture(scope='function')
def engine(services):
    return services.engine


@pytest.fixture(scope='function')
def stock(services):
    return services.stock_records


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(sku="FR-AVI-01", name="Frame Aviator", is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(sku="LN-SV-150", name="Lens Single Vision", is_active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def location(db_session):
    location = Location(code="CEN", name="Sucursal Centro", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def second_location(db_session):
    location = Location(code="NOR", name="Sucursal Norte", is_active=True)
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def variant(db_session):
    variant = Variant(color="Black", brand="Ray-Ban", is_active=True)
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def make_record(stock, product, location, variant):
    """Factory creating stock records through the service (opening entry included)."""
    def _make(quantity=0, threshold=None, *, product_id=None, location_id=None, variant_id=None, actor_id=1):
        req = CreateStockRecordRequest(
            product_id=product_id or product.id,
            location_id=location_id or location.id,
            variant_id=variant_id or variant.id,
            quantity=quantity,
            threshold=threshold,
        )
        return stock.create(req, actor_id=actor_id)

    return _make


@pytest.fixture(scope='function')
def actor_headers():
    return {"X-User-Id": "7"}
