"""
Sales service with transactional logic.
Turns checkout lines into a persisted sale and decrements the lots it drew from.
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lotpos.models import DiscountKind, Sale, SaleLineItem
from lotpos.exceptions import (
    ConcurrencyConflictError, PersistenceError, PosError, ValidationError
)
from lotpos.services.checkout_lines import CheckoutLine, Discount, cart_errors, discount_errors
from lotpos.services.consumption_planner import AllocationPlanItem, plan_lines, quantities_by_lot
from lotpos.services.pricing_service import CENTS

logger = logging.getLogger(__name__)

_DECREMENT_LOT = text("""
    UPDATE stock_lot
       SET current_quantity = current_quantity - :qty
     WHERE id = :lot_id
       AND current_quantity >= :qty
""")


class SaleState(enum.Enum):
    """Lifecycle of one checkout attempt."""
    PLANNING = 'planning'
    VALIDATING = 'validating'
    COMMITTING = 'committing'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'


class SaleAttempt:
    """Tracks and logs the state of a single checkout attempt."""

    def __init__(self, seller_id):
        self.attempt_id = uuid.uuid4().hex[:8]
        self.seller_id = seller_id
        self.state = SaleState.PLANNING
        self.error = None
        logger.info("Sale attempt %s started by seller %s", self.attempt_id, seller_id)

    def advance(self, state: SaleState):
        logger.info("Sale attempt %s: %s -> %s", self.attempt_id, self.state.value, state.value)
        self.state = state

    def roll_back(self, error: Exception):
        self.error = error
        logger.warning(
            "Sale attempt %s rolled back during %s: %s",
            self.attempt_id, self.state.value, error
        )
        self.state = SaleState.ROLLED_BACK


@dataclass(frozen=True, slots=True)
class ResolvedCheckout:
    """A fully priced checkout that has not touched the database yet."""
    items: List[AllocationPlanItem]
    subtotal: Decimal
    discount: Optional[Discount]
    discount_amount: Decimal
    total_amount: Decimal
    total_savings: Decimal


def compute_discount_amount(subtotal: Decimal, discount: Optional[Discount]) -> Decimal:
    """Amount discounts are capped at the subtotal; percentages are 0-100."""
    if discount is None:
        return Decimal('0.00')
    if discount.kind == DiscountKind.AMOUNT:
        return min(discount.value, subtotal).quantize(CENTS)
    return (subtotal * discount.value / Decimal('100')).quantize(CENTS)


def _require_valid_input(lines: List[CheckoutLine], seller_id, discount: Optional[Discount]):
    """Shape checks that need no I/O."""
    errors = cart_errors(lines) + discount_errors(discount)
    if not isinstance(seller_id, str) or not seller_id.strip():
        errors.append('Seller identity is required')
    if errors:
        raise ValidationError(errors[0], {'errors': errors})


def resolve_checkout(
    session: Session,
    lines: List[CheckoutLine],
    seller_id: str,
    discount: Optional[Discount] = None,
    today: Optional[date] = None,
    attempt: Optional[SaleAttempt] = None,
) -> ResolvedCheckout:
    """Plan and price every line; reads only."""
    _require_valid_input(lines, seller_id, discount)
    items = plan_lines(session, lines, today)

    if attempt:
        attempt.advance(SaleState.VALIDATING)
    if not items:
        raise ValidationError('Nothing to sell')

    subtotal = sum((item.line_subtotal for item in items), Decimal('0.00'))
    discount_amount = compute_discount_amount(subtotal, discount)
    total_savings = sum((item.savings for item in items), Decimal('0.00'))

    return ResolvedCheckout(
        items=items,
        subtotal=subtotal.quantize(CENTS),
        discount=discount,
        discount_amount=discount_amount,
        total_amount=(subtotal - discount_amount).quantize(CENTS),
        total_savings=total_savings.quantize(CENTS),
    )


def commit_resolved(
    session: Session,
    resolved: ResolvedCheckout,
    seller_id: str,
    attempt: Optional[SaleAttempt] = None,
) -> Sale:
    """
    Persist a resolved checkout in one transaction.

    Each touched lot is decremented only if it still holds the units at
    commit time; a lost race raises ConcurrencyConflictError. Any failure
    rolls back the header, the line items and every decrement together.
    """
    attempt = attempt or SaleAttempt(seller_id)
    attempt.advance(SaleState.COMMITTING)

    try:
        # 1. Sale header
        sale = Sale(
            seller_id=seller_id,
            created_at=datetime.now(),
            subtotal=resolved.subtotal,
            discount_kind=resolved.discount.kind if resolved.discount else None,
            discount_value=resolved.discount.value if resolved.discount else None,
            discount_amount=resolved.discount_amount,
            total_amount=resolved.total_amount,
            total_savings=resolved.total_savings,
        )
        session.add(sale)
        session.flush()

        # 2. One line item per allocation
        for item in resolved.items:
            session.add(SaleLineItem(
                sale_id=sale.id,
                lot_id=item.lot_id,
                product_id=item.product_id,
                quantity_sold=item.quantity_taken,
                price_applied=item.applied_price,
                price_tier=item.price_tier,
                line_subtotal=item.line_subtotal,
                savings=item.savings,
                sale_format=item.sale_format,
            ))
        session.flush()

        # 3. Conditional decrements, ascending lot id so concurrent commits lock in one order
        for lot_id, qty in sorted(quantities_by_lot(resolved.items).items()):
            _decrement_lot(session, lot_id, qty)

        session.commit()

    except PosError as e:
        session.rollback()
        attempt.roll_back(e)
        raise
    except SQLAlchemyError as e:
        session.rollback()
        attempt.roll_back(e)
        raise PersistenceError(f'Error while committing sale: {e}') from e
    except Exception as e:
        session.rollback()
        attempt.roll_back(e)
        raise

    attempt.advance(SaleState.COMMITTED)
    logger.info(
        "Sale %s committed: %d line item(s), total %s",
        sale.id, len(resolved.items), resolved.total_amount
    )
    return sale


def confirm_sale(
    session: Session,
    lines: List[CheckoutLine],
    seller_id: str,
    discount: Optional[Discount] = None,
    today: Optional[date] = None,
) -> Sale:
    """
    Confirm a sale with full transactional processing.

    Plans every line (automatic or pinned to a lot), prices it, applies the
    discount and commits header, line items and lot decrements atomically.
    There is no retry here: a caller that gets ConcurrencyConflictError may
    start a fresh attempt.
    """
    attempt = SaleAttempt(seller_id)
    try:
        resolved = resolve_checkout(session, lines, seller_id, discount, today, attempt)
    except PosError as e:
        # Planning only read; release the snapshot
        session.rollback()
        attempt.roll_back(e)
        raise

    return commit_resolved(session, resolved, seller_id, attempt)


def checkout(
    session: Session,
    lines: List[CheckoutLine],
    seller_id: str,
    discount: Optional[Discount] = None,
    today: Optional[date] = None,
) -> dict:
    """Collaborator-facing checkout: a result dict on success, a structured error otherwise."""
    try:
        sale = confirm_sale(session, lines, seller_id, discount, today)
    except PosError as e:
        return {'success': False, 'error': e.to_dict()}
    return format_sale(sale)


def get_sale(session: Session, sale_id: int) -> Sale:
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise ValidationError(f'Unknown sale {sale_id}', {'sale_id': sale_id})
    return sale


def format_sale(sale: Sale) -> dict:
    """Render a persisted sale in the checkout result shape."""
    return {
        'success': True,
        'sale_id': sale.id,
        'seller_id': sale.seller_id,
        'created_at': sale.created_at.isoformat() if sale.created_at else None,
        'subtotal': sale.subtotal,
        'discount': {
            'kind': sale.discount_kind.value,
            'value': sale.discount_value,
        } if sale.discount_kind else None,
        'discount_amount': sale.discount_amount,
        'total_amount': sale.total_amount,
        'total_savings': sale.total_savings,
        'line_items': [
            {
                'lot_id': line.lot_id,
                'product_id': line.product_id,
                'quantity_sold': line.quantity_sold,
                'price_applied': line.price_applied,
                'price_tier': line.price_tier.value,
                'line_subtotal': line.line_subtotal,
                'sale_format': line.sale_format.value,
            }
            for line in sale.lines
        ],
    }


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _decrement_lot(session: Session, lot_id: int, qty: int):
    """Take ``qty`` units from a lot only if it still holds them."""
    result = session.execute(_DECREMENT_LOT, {'qty': qty, 'lot_id': lot_id})
    if result.rowcount != 1:
        raise ConcurrencyConflictError(lot_id, qty)
