"""
Consumption planning - read-only allocation of a requested quantity to lots.

Nothing here writes to the database. A plan is a list of AllocationPlanItem
values computed from a snapshot of lot rows; the sales service is the only
place that turns a plan into stock decrements.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from lotpos.exceptions import ExpiredLotError, InsufficientStockError, ValidationError
from lotpos.models import PriceTier, Product, SaleFormat, StockLot
from lotpos.services.checkout_lines import AutomaticLine, CheckoutLine, OverrideLine, is_positive_int
from lotpos.services.lot_selector import order_lots, select_lots
from lotpos.services.pricing_service import CENTS, evaluate_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AllocationPlanItem:
    """Units drawn from one lot, with the price decided for that allocation."""
    lot_id: int
    product_id: int
    quantity_taken: int
    applied_price: Decimal
    price_tier: PriceTier
    savings: Decimal = Decimal('0.00')
    sale_format: SaleFormat = SaleFormat.UNIT

    @property
    def line_subtotal(self) -> Decimal:
        return (self.applied_price * self.quantity_taken).quantize(CENTS)


def _free_quantity(lot: StockLot, reserved: Dict[int, int]) -> int:
    return max(0, lot.current_quantity - reserved.get(lot.id, 0))


def build_plan(
    lots: Iterable[StockLot],
    product_id: int,
    requested_qty: int,
    today: date,
    reserved: Optional[Dict[int, int]] = None,
    sale_format: SaleFormat = SaleFormat.UNIT,
) -> List[AllocationPlanItem]:
    """
    Allocate ``requested_qty`` units over a snapshot of the product's lots.

    ``reserved`` holds units of each lot already promised to earlier lines of
    the same checkout; they are treated as gone. Raises InsufficientStockError
    (with the total that was free) when the lots cannot cover the request and
    ExpiredLotError when an expired lot would be drawn from. No partial plan
    is ever returned.
    """
    if not is_positive_int(requested_qty):
        raise ValidationError(
            f'Quantity must be a positive integer, got {requested_qty!r}',
            {'product_id': product_id, 'quantity': requested_qty}
        )
    reserved = reserved or {}
    ordered = order_lots(lots)

    available = sum(_free_quantity(lot, reserved) for lot in ordered)
    if requested_qty > available:
        raise InsufficientStockError(product_id, requested_qty, available)

    plan = []
    remaining = requested_qty
    for lot in ordered:
        take = min(remaining, _free_quantity(lot, reserved))
        if take <= 0:
            continue
        if lot.is_expired(today):
            raise ExpiredLotError(lot.id, lot.expiration_date)

        evaluation = evaluate_price(lot, take)
        plan.append(AllocationPlanItem(
            lot_id=lot.id,
            product_id=lot.product_id,
            quantity_taken=take,
            applied_price=evaluation.price,
            price_tier=evaluation.tier,
            savings=evaluation.savings,
            sale_format=sale_format,
        ))
        remaining -= take
        if remaining == 0:
            break

    return plan


def _get_sellable_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ValidationError(f'Unknown product {product_id}', {'product_id': product_id})
    if not product.active:
        raise ValidationError(f'Product "{product.name}" is not active', {'product_id': product_id})
    return product


def plan_consumption(
    session: Session,
    product_id: int,
    requested_qty: int,
    today: Optional[date] = None,
    reserved: Optional[Dict[int, int]] = None,
    sale_format: SaleFormat = SaleFormat.UNIT,
) -> List[AllocationPlanItem]:
    """Plan an automatic line against the product's live lots."""
    _get_sellable_product(session, product_id)
    lots = select_lots(session, product_id)
    return build_plan(lots, product_id, requested_qty, today or date.today(), reserved, sale_format)


def plan_override(
    session: Session,
    line: OverrideLine,
    today: Optional[date] = None,
    reserved: Optional[Dict[int, int]] = None,
) -> List[AllocationPlanItem]:
    """
    Check an operator-pinned line against its lot and express it as a plan.

    The caller's price is kept; the tier still follows the per-allocation
    rule and savings are what the price saves against the lot's unit price.
    """
    if not is_positive_int(line.quantity):
        raise ValidationError(
            f'Quantity must be a positive integer, got {line.quantity!r}',
            {'lot_id': line.lot_id, 'quantity': line.quantity}
        )
    if line.price < 0 or line.price != line.price.quantize(CENTS):
        raise ValidationError(
            f'Override price must be a non-negative amount in cents, got {line.price}',
            {'lot_id': line.lot_id, 'price': str(line.price)}
        )
    today = today or date.today()
    reserved = reserved or {}

    lot = session.get(StockLot, line.lot_id)
    if lot is None:
        raise ValidationError(f'Unknown lot {line.lot_id}', {'lot_id': line.lot_id})
    _get_sellable_product(session, lot.product_id)

    free = _free_quantity(lot, reserved)
    if line.quantity > free:
        raise InsufficientStockError(lot.product_id, line.quantity, free)
    if lot.is_expired(today):
        raise ExpiredLotError(lot.id, lot.expiration_date)

    tier = evaluate_price(lot, line.quantity).tier
    savings = max(Decimal('0.00'), ((Decimal(lot.unit_price) - line.price) * line.quantity).quantize(CENTS))
    return [AllocationPlanItem(
        lot_id=lot.id,
        product_id=lot.product_id,
        quantity_taken=line.quantity,
        applied_price=line.price,
        price_tier=tier,
        savings=savings,
        sale_format=line.sale_format,
    )]


def plan_lines(
    session: Session,
    lines: List[CheckoutLine],
    today: Optional[date] = None,
) -> List[AllocationPlanItem]:
    """
    Resolve every line of a checkout into allocations.

    Lines are planned in order against one snapshot; units taken by earlier
    lines are reserved so two lines never count the same stock twice.
    """
    today = today or date.today()
    reserved: Dict[int, int] = {}
    items: List[AllocationPlanItem] = []

    for line in lines:
        if isinstance(line, OverrideLine):
            planned = plan_override(session, line, today, reserved)
        elif isinstance(line, AutomaticLine):
            planned = plan_consumption(
                session, line.product_id, line.quantity, today, reserved, line.sale_format
            )
        else:
            raise ValidationError(f'Unsupported cart line {line!r}')

        for item in planned:
            reserved[item.lot_id] = reserved.get(item.lot_id, 0) + item.quantity_taken
        items.extend(planned)

    logger.debug("Planned %d allocations over %d lots", len(items), len(reserved))
    return items


def quantities_by_lot(items: Iterable[AllocationPlanItem]) -> Dict[int, int]:
    """Total units each lot must give up for a plan."""
    totals: Dict[int, int] = {}
    for item in items:
        totals[item.lot_id] = totals.get(item.lot_id, 0) + item.quantity_taken
    return totals
