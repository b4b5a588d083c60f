"""Stock intake - records new lots. Existing lots are never modified here."""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from lotpos.models import Product, StockLot
from lotpos.exceptions import ValidationError
from lotpos.services.pricing_service import CENTS, MAX_WHOLESALE_PRICE, MIN_WHOLESALE_PRICE

logger = logging.getLogger(__name__)


def _to_decimal(value, field: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number', {'field': field, 'value': value})
    if not number.is_finite():
        raise ValidationError(f'{field} must be a number', {'field': field, 'value': value})
    return number


def normalize_wholesale_price(value) -> Optional[Decimal]:
    """Validate an optional wholesale price and round it to cents."""
    if value is None or value == '':
        return None
    price = _to_decimal(value, 'wholesale_price')
    if price < MIN_WHOLESALE_PRICE:
        raise ValidationError(f'Wholesale price must be at least {MIN_WHOLESALE_PRICE}')
    if price > MAX_WHOLESALE_PRICE:
        raise ValidationError(f'Wholesale price cannot exceed {MAX_WHOLESALE_PRICE}')
    return price.quantize(CENTS)


def create_product(session: Session, name: str, barcode: Optional[str] = None) -> Product:
    if not name or not name.strip():
        raise ValidationError('Product name is required')
    product = Product(name=name.strip(), barcode=barcode, active=True)
    session.add(product)
    session.commit()
    return product


def receive_lot(
    session: Session,
    product_id: int,
    quantity: int,
    unit_price,
    wholesale_price=None,
    expiration_date: Optional[date] = None,
    barcode: Optional[str] = None,
    purchase_price=None,
    created_at: Optional[datetime] = None,
) -> StockLot:
    """Record the intake of a new lot for a product."""
    if session.get(Product, product_id) is None:
        raise ValidationError(f'Unknown product {product_id}', {'product_id': product_id})
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError('Lot quantity must be a positive integer', {'quantity': quantity})

    unit = _to_decimal(unit_price, 'unit_price')
    if unit <= 0:
        raise ValidationError('Unit price must be greater than 0')

    lot = StockLot(
        product_id=product_id,
        barcode=barcode,
        initial_quantity=quantity,
        current_quantity=quantity,
        unit_price=unit.quantize(CENTS),
        wholesale_price=normalize_wholesale_price(wholesale_price),
        purchase_price=_to_decimal(purchase_price, 'purchase_price').quantize(CENTS)
        if purchase_price is not None else None,
        expiration_date=expiration_date,
        created_at=created_at or datetime.now(),
    )
    session.add(lot)
    session.commit()
    logger.info("Received lot %s for product %s: %d units", lot.id, product_id, quantity)
    return lot


def get_available_stock(session: Session, product_id: int) -> int:
    """Units left across every lot of a product."""
    total = session.query(func.coalesce(func.sum(StockLot.current_quantity), 0)).filter(
        StockLot.product_id == product_id,
        StockLot.current_quantity > 0
    ).scalar()
    return int(total)
