"""
Checkout input shapes.

A cart line is either resolved automatically from a product's lots or pinned
by the operator to a specific lot and price. Both arrive as JSON objects and
are turned into one of two frozen variants here, so the rest of the engine
dispatches on type instead of probing optional keys.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Union

from flask import current_app, has_app_context

from lotpos.exceptions import ValidationError
from lotpos.models import DiscountKind, SaleFormat
from lotpos.services.pricing_service import CENTS

MAX_CART_LINES = 50
MAX_LINE_QUANTITY = 1000
MAX_OVERRIDE_PRICE = Decimal('1000000')


def setting(name: str, default):
    """Checkout limit from the running app's config, or the module default outside one."""
    if has_app_context():
        return current_app.config.get(name, default)
    return default


@dataclass(frozen=True, slots=True)
class AutomaticLine:
    """Sell ``quantity`` units of a product, drawing lots in priority order."""
    product_id: int
    quantity: Any
    sale_format: SaleFormat = SaleFormat.UNIT


@dataclass(frozen=True, slots=True)
class OverrideLine:
    """Sell ``quantity`` units from one lot at a caller-chosen price."""
    lot_id: int
    quantity: Any
    price: Decimal
    sale_format: SaleFormat = SaleFormat.UNIT


CheckoutLine = Union[AutomaticLine, OverrideLine]


@dataclass(frozen=True, slots=True)
class Discount:
    kind: DiscountKind
    value: Decimal


def _parse_id(value: Any, field: str, prefix: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{prefix} {field} must be an integer id')
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f'{prefix} {field} must be an integer id', {'field': field, 'value': value})


def _parse_quantity(value: Any, prefix: str) -> Any:
    """Coerce digit strings; anything else numeric is kept for the validator to judge."""
    if value is None:
        raise ValidationError(f'{prefix} quantity is required', {'field': 'quantity'})
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValidationError(f'{prefix} quantity must be a number', {'field': 'quantity', 'value': value})
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f'{prefix} quantity must be a number', {'field': 'quantity', 'value': value})
    return value


def _parse_decimal(value: Any, field: str, prefix: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f'{prefix} {field} must be a number', {'field': field})
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{prefix} {field} must be a number', {'field': field, 'value': value})
    if not number.is_finite():
        raise ValidationError(f'{prefix} {field} must be a number', {'field': field, 'value': value})
    return number


def _parse_sale_format(value: Any, prefix: str) -> SaleFormat:
    if value is None:
        return SaleFormat.UNIT
    try:
        return SaleFormat(value)
    except ValueError:
        allowed = ', '.join(f.value for f in SaleFormat)
        raise ValidationError(
            f'{prefix} invalid sale format "{value}" (allowed: {allowed})',
            {'field': 'sale_format', 'value': value}
        )


def parse_line(payload: Mapping[str, Any], index: int = 0) -> CheckoutLine:
    """Build a checkout line variant from a request payload."""
    prefix = f'Line {index + 1}:'
    if not isinstance(payload, Mapping):
        raise ValidationError(f'{prefix} must be an object')

    quantity = _parse_quantity(payload.get('quantity'), prefix)
    sale_format = _parse_sale_format(payload.get('sale_format'), prefix)

    if payload.get('lot_id') is not None:
        if payload.get('price') is None:
            raise ValidationError(f'{prefix} price is required when a lot is pinned', {'field': 'price'})
        return OverrideLine(
            lot_id=_parse_id(payload['lot_id'], 'lot_id', prefix),
            quantity=quantity,
            price=_parse_decimal(payload['price'], 'price', prefix),
            sale_format=sale_format,
        )

    if payload.get('product_id') is None:
        raise ValidationError(f'{prefix} product_id or lot_id is required', {'field': 'product_id'})
    return AutomaticLine(
        product_id=_parse_id(payload['product_id'], 'product_id', prefix),
        quantity=quantity,
        sale_format=sale_format,
    )


def parse_lines(payload: Any) -> List[CheckoutLine]:
    if not isinstance(payload, list):
        raise ValidationError('lines must be a list of cart lines')
    return [parse_line(item, index) for index, item in enumerate(payload)]


def parse_discount(payload: Optional[Mapping[str, Any]]) -> Optional[Discount]:
    """Parse ``{"kind": ..., "value": ...}``; range checks happen at checkout."""
    if payload is None:
        return None
    if not isinstance(payload, Mapping):
        raise ValidationError('discount must be an object')
    try:
        kind = DiscountKind(payload.get('kind'))
    except ValueError:
        raise ValidationError(
            'discount kind must be "amount" or "percentage"',
            {'field': 'discount.kind', 'value': payload.get('kind')}
        )
    if payload.get('value') is None:
        raise ValidationError('discount value is required', {'field': 'discount.value'})
    return Discount(kind=kind, value=_parse_decimal(payload['value'], 'value', 'Discount'))


def is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def line_errors(line: CheckoutLine, index: int = 0) -> List[str]:
    """Shape problems of one line that need no database access."""
    prefix = f'Line {index + 1}:'
    max_quantity = setting('MAX_LINE_QUANTITY', MAX_LINE_QUANTITY)
    max_price = Decimal(str(setting('MAX_OVERRIDE_PRICE', MAX_OVERRIDE_PRICE)))
    errors = []
    if not is_positive_int(line.quantity):
        errors.append(f'{prefix} quantity must be a positive integer')
    elif line.quantity > max_quantity:
        errors.append(f'{prefix} quantity too high (maximum {max_quantity})')
    if isinstance(line, OverrideLine):
        if line.price < 0:
            errors.append(f'{prefix} price cannot be negative')
        elif line.price > max_price:
            errors.append(f'{prefix} price too high (maximum {max_price})')
        elif line.price != line.price.quantize(CENTS):
            errors.append(f'{prefix} price must have at most 2 decimal places')
    return errors


def cart_errors(lines: List[CheckoutLine]) -> List[str]:
    if not lines:
        return ['The cart is empty']
    max_lines = setting('MAX_CART_LINES', MAX_CART_LINES)
    errors = []
    if len(lines) > max_lines:
        errors.append(f'Too many lines in the cart (maximum {max_lines})')
    for index, line in enumerate(lines):
        errors.extend(line_errors(line, index))
    return errors


def discount_errors(discount: Optional[Discount]) -> List[str]:
    if discount is None:
        return []
    if discount.value < 0:
        return ['Discount value cannot be negative']
    if discount.kind == DiscountKind.PERCENTAGE and discount.value > 100:
        return ['Percentage discount cannot exceed 100']
    return []
