"""Lot selection - which stock lots a product's sales draw from, and in what order."""
from datetime import date
from typing import Iterable, List

from sqlalchemy.orm import Session
from lotpos.models import StockLot


def lot_priority_key(lot: StockLot):
    """
    Consumption priority of a lot (lower sorts first).

    Lots with an expiration date come before lots without one; dated lots go
    soonest-expiring first, undated lots oldest-intake first. Intake time and
    then lot id break ties so the order is stable across calls.
    """
    # Lots not yet stamped with an intake time sort after stamped ones
    intake = (lot.created_at is None, lot.created_at)
    if lot.expiration_date is not None:
        return (0, lot.expiration_date, intake, lot.id or 0)
    return (1, date.min, intake, lot.id or 0)


def order_lots(lots: Iterable[StockLot]) -> List[StockLot]:
    """Filter a snapshot down to lots with stock and sort it by priority."""
    return sorted((lot for lot in lots if lot.current_quantity > 0), key=lot_priority_key)


def select_lots(session: Session, product_id: int) -> List[StockLot]:
    """Return the product's lots that still hold stock, in consumption order."""
    lots = session.query(StockLot).filter(
        StockLot.product_id == product_id,
        StockLot.current_quantity > 0
    ).all()
    return order_lots(lots)


def available_quantity(lots: Iterable[StockLot]) -> int:
    return sum(lot.current_quantity for lot in lots if lot.current_quantity > 0)
