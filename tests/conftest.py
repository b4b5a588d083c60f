import pytest
from datetime import date, datetime

from config import TestConfig
from lotpos import create_app
from lotpos.database import create_all, drop_all, get_session
from lotpos.models import StockLot
from lotpos.services.stock_lot_service import create_product, receive_lot


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance on a throwaway SQLite file."""
    config = type('PerTestConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'lotpos.db'}",
    })
    app = create_app(config)
    create_all()
    yield app
    get_session().remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def today():
    """Fixed business date so expiry checks are deterministic."""
    return date(2025, 5, 1)


@pytest.fixture(scope='function')
def product(session):
    """Create test product."""
    return create_product(session, 'Yerba Mate 1kg', barcode='7790001000011')


@pytest.fixture(scope='function')
def other_product(session):
    return create_product(session, 'Azucar 1kg')


@pytest.fixture
def make_lot(session):
    """Factory for stock lots: make_lot(product, qty, unit_price, ...)."""
    def _make_lot(product, quantity, unit_price, wholesale_price=None,
                  expiration_date=None, created_at=None, barcode=None):
        return receive_lot(
            session,
            product.id,
            quantity,
            unit_price,
            wholesale_price=wholesale_price,
            expiration_date=expiration_date,
            barcode=barcode,
            created_at=created_at or datetime(2025, 1, 1, 9, 0, 0),
        )
    return _make_lot


@pytest.fixture
def lot_quantity(session):
    """Read a lot's live quantity, bypassing anything cached in the session."""
    def _lot_quantity(lot_id):
        session.expire_all()
        return session.get(StockLot, lot_id).current_quantity
    return _lot_quantity
