"""Stock Lot model."""
from datetime import date
from typing import Optional

from sqlalchemy import Column, BigInteger, Integer, String, Numeric, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lotpos.database import Base, BigIntPK


class StockLot(Base):
    """Stock Lot - one intake batch of a product with its own prices and expiry.

    ``wholesale_price`` and ``expiration_date`` are NULL when the lot has no
    tier pricing or never expires.
    """

    __tablename__ = 'stock_lot'
    __table_args__ = (
        CheckConstraint('current_quantity >= 0', name='ck_stock_lot_qty_non_negative'),
        CheckConstraint('current_quantity <= initial_quantity', name='ck_stock_lot_qty_le_initial'),
        CheckConstraint('unit_price > 0', name='ck_stock_lot_unit_price_positive'),
        CheckConstraint(
            'wholesale_price IS NULL OR wholesale_price > 0',
            name='ck_stock_lot_wholesale_price_positive'
        ),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    barcode = Column(String, nullable=True)
    initial_quantity = Column(Integer, nullable=False)
    current_quantity = Column(Integer, nullable=False)
    purchase_price = Column(Numeric(12, 2), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=False)
    wholesale_price = Column(Numeric(12, 2), nullable=True)
    expiration_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product', back_populates='lots')

    def __repr__(self):
        return (
            f"<StockLot(id={self.id}, product_id={self.product_id}, "
            f"current_quantity={self.current_quantity})>"
        )

    @property
    def has_wholesale_price(self) -> bool:
        return self.wholesale_price is not None and self.wholesale_price > 0

    def days_until_expiration(self, today: date) -> Optional[int]:
        """Whole days left before expiry, or None for lots that never expire."""
        if self.expiration_date is None:
            return None
        return (self.expiration_date - today).days

    def is_expired(self, today: date) -> bool:
        days_left = self.days_until_expiration(today)
        return days_left is not None and days_left <= 0
