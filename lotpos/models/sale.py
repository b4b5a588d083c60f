"""Sale model."""
from sqlalchemy import Column, String, Numeric, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lotpos.database import Base, BigIntPK
import enum


class DiscountKind(str, enum.Enum):
    """How a sale-level discount is expressed."""
    AMOUNT = 'amount'
    PERCENTAGE = 'percentage'


class Sale(Base):
    """Sale header. Immutable once committed."""

    __tablename__ = 'sale'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    seller_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_kind = Column(
        Enum(DiscountKind, name='discount_kind', values_callable=lambda e: [m.value for m in e]),
        nullable=True
    )
    discount_value = Column(Numeric(12, 2), nullable=True)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    # Sum of what wholesale pricing saved the customer on this sale
    total_savings = Column(Numeric(12, 2), nullable=False, default=0)

    # Relationships
    lines = relationship(
        'SaleLineItem',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleLineItem.id'
    )

    def __repr__(self):
        return f"<Sale(id={self.id}, seller_id='{self.seller_id}', total_amount={self.total_amount})>"
