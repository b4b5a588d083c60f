import pytest
from datetime import datetime
from decimal import Decimal

from lotpos.models import StockLot


@pytest.fixture
def build_lot():
    """Transient StockLot for snapshot-level tests (never added to a session)."""
    def _build_lot(lot_id, quantity, unit_price='1000', wholesale_price=None,
                   expiration_date=None, created_at=None, product_id=1):
        return StockLot(
            id=lot_id,
            product_id=product_id,
            initial_quantity=max(quantity, 1),
            current_quantity=quantity,
            unit_price=Decimal(unit_price),
            wholesale_price=Decimal(wholesale_price) if wholesale_price is not None else None,
            expiration_date=expiration_date,
            created_at=created_at or datetime(2025, 1, 1, 9, 0, 0),
        )
    return _build_lot
