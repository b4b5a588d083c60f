"""
Pricing evaluation for lot allocations.

The wholesale tier is decided per allocation: the quantity compared against
the threshold is what is taken from *this* lot, not the order total. A
10-unit request split 2/8 across two lots prices the 2-unit part at unit
price and the 8-unit part at wholesale.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from lotpos.models import PriceTier, StockLot

# Minimum units taken from one lot for its wholesale price to apply
WHOLESALE_THRESHOLD = 3

MIN_WHOLESALE_PRICE = Decimal('0.01')
MAX_WHOLESALE_PRICE = Decimal('999999.99')

CENTS = Decimal('0.01')


@dataclass(frozen=True, slots=True)
class PriceEvaluation:
    price: Decimal
    tier: PriceTier
    savings: Decimal


def qualifies_for_wholesale(lot: StockLot, quantity: int) -> bool:
    return lot.has_wholesale_price and quantity >= WHOLESALE_THRESHOLD


def evaluate_price(lot: StockLot, quantity: int) -> PriceEvaluation:
    """Price ``quantity`` units taken from ``lot``."""
    unit_price = Decimal(lot.unit_price)
    if qualifies_for_wholesale(lot, quantity):
        wholesale_price = Decimal(lot.wholesale_price)
        savings = ((unit_price - wholesale_price) * quantity).quantize(CENTS)
        return PriceEvaluation(price=wholesale_price, tier=PriceTier.WHOLESALE, savings=savings)
    return PriceEvaluation(price=unit_price, tier=PriceTier.UNIT, savings=Decimal('0.00'))


def units_short_of_wholesale(quantity: int) -> int:
    """How many more units would reach the wholesale threshold (0 if already there)."""
    return max(0, WHOLESALE_THRESHOLD - quantity)
