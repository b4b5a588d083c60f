"""
Cart validation - advisory pre-flight over proposed checkout lines.

Never writes and never raises for business problems; everything is reported
in the returned errors/warnings. Stock can change between this check and the
commit, so the sales service repeats the authoritative checks itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from lotpos.models import Product, StockLot
from lotpos.services.checkout_lines import (
    AutomaticLine, CheckoutLine, Discount, OverrideLine,
    cart_errors, discount_errors, line_errors, setting,
)
from lotpos.services.lot_selector import available_quantity, select_lots
from lotpos.services.pricing_service import WHOLESALE_THRESHOLD, units_short_of_wholesale

logger = logging.getLogger(__name__)

EXPIRY_WARNING_DAYS = 7


@dataclass(frozen=True, slots=True)
class CartValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'is_valid': self.is_valid, 'errors': list(self.errors), 'warnings': list(self.warnings)}


def _lots_touched(lots: List[StockLot], quantity: int, reserved: Dict[int, int]) -> List[StockLot]:
    """The lots an allocation of ``quantity`` would draw from, in order."""
    touched = []
    remaining = quantity
    for lot in lots:
        if remaining <= 0:
            break
        free = max(0, lot.current_quantity - reserved.get(lot.id, 0))
        take = min(remaining, free)
        if take > 0:
            touched.append(lot)
            reserved[lot.id] = reserved.get(lot.id, 0) + take
            remaining -= take
    return touched


def _expiry_messages(prefix: str, lots: List[StockLot], today: date, errors: List[str], warnings: List[str]):
    warning_days = setting('EXPIRY_WARNING_DAYS', EXPIRY_WARNING_DAYS)
    for lot in lots:
        days_left = lot.days_until_expiration(today)
        if days_left is None:
            continue
        if days_left <= 0:
            errors.append(f'{prefix} lot {lot.id} expired on {lot.expiration_date.isoformat()}')
        elif days_left <= warning_days:
            plural = 's' if days_left != 1 else ''
            warnings.append(f'{prefix} lot {lot.id} expires in {days_left} day{plural}')


def _upsell_message(prefix: str, lots: List[StockLot], quantity: int) -> Optional[str]:
    """Hint when the line is 1-2 units short of the wholesale threshold."""
    if not any(lot.has_wholesale_price for lot in lots):
        return None
    needed = units_short_of_wholesale(quantity)
    if needed in (1, 2):
        plural = 's' if needed > 1 else ''
        return f'{prefix} add {needed} more unit{plural} to reach the wholesale price ({WHOLESALE_THRESHOLD}+ units)'
    return None


def _product_error(prefix: str, product: Optional[Product], product_id: int) -> Optional[str]:
    if product is None:
        return f'{prefix} unknown product {product_id}'
    if not product.active:
        return f'{prefix} product "{product.name}" is not active'
    return None


def _check_automatic_line(
    session: Session, prefix: str, line: AutomaticLine, today: date,
    reserved: Dict[int, int], errors: List[str], warnings: List[str],
):
    product = session.get(Product, line.product_id)
    product_error = _product_error(prefix, product, line.product_id)
    if product_error:
        errors.append(product_error)
        return

    lots = select_lots(session, line.product_id)
    available = available_quantity(lots) - sum(reserved.get(lot.id, 0) for lot in lots)
    if line.quantity > available:
        errors.append(
            f'{prefix} insufficient stock for "{product.name}": '
            f'requested {line.quantity}, available {max(0, available)}'
        )
        return

    _expiry_messages(prefix, _lots_touched(lots, line.quantity, reserved), today, errors, warnings)
    upsell = _upsell_message(prefix, lots, line.quantity)
    if upsell:
        warnings.append(upsell)


def _check_override_line(
    session: Session, prefix: str, line: OverrideLine, today: date,
    reserved: Dict[int, int], errors: List[str], warnings: List[str],
):
    lot = session.get(StockLot, line.lot_id)
    if lot is None:
        errors.append(f'{prefix} unknown lot {line.lot_id}')
        return
    product_error = _product_error(prefix, session.get(Product, lot.product_id), lot.product_id)
    if product_error:
        errors.append(product_error)
        return

    free = max(0, lot.current_quantity - reserved.get(lot.id, 0))
    if line.quantity > free:
        errors.append(f'{prefix} lot {lot.id} only has {free} units left, requested {line.quantity}')
        return

    reserved[lot.id] = reserved.get(lot.id, 0) + line.quantity
    _expiry_messages(prefix, [lot], today, errors, warnings)
    upsell = _upsell_message(prefix, [lot], line.quantity)
    if upsell:
        warnings.append(upsell)


def validate_cart(
    session: Session,
    lines: List[CheckoutLine],
    discount: Optional[Discount] = None,
    today: Optional[date] = None,
) -> CartValidation:
    """Check proposed lines for stock, expiry and pricing hints without mutating anything."""
    today = today or date.today()
    errors = cart_errors(lines) + discount_errors(discount)
    warnings: List[str] = []
    reserved: Dict[int, int] = {}

    for index, line in enumerate(lines):
        if line_errors(line, index):
            # Already reported; stock checks need a usable quantity
            continue
        prefix = f'Line {index + 1}:'
        if isinstance(line, OverrideLine):
            _check_override_line(session, prefix, line, today, reserved, errors, warnings)
        else:
            _check_automatic_line(session, prefix, line, today, reserved, errors, warnings)

    if errors:
        logger.info("Cart validation failed with %d error(s)", len(errors))
    return CartValidation(is_valid=not errors, errors=errors, warnings=warnings)
