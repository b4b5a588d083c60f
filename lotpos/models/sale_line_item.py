"""Sale Line Item model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, Enum, ForeignKey
from sqlalchemy.orm import relationship
from lotpos.database import Base, BigIntPK
import enum


class PriceTier(str, enum.Enum):
    """Which of the lot's prices was applied to an allocation."""
    UNIT = 'unit'
    WHOLESALE = 'wholesale'


class SaleFormat(str, enum.Enum):
    """Selling format recorded on each line."""
    UNIT = 'unit'
    DISPLAY = 'display'
    PALLET = 'pallet'


class SaleLineItem(Base):
    """Sale Line Item - one row per lot allocation."""

    __tablename__ = 'sale_line_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id'), nullable=False, index=True)
    lot_id = Column(BigInteger, ForeignKey('stock_lot.id'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False)
    quantity_sold = Column(Integer, nullable=False)
    price_applied = Column(Numeric(12, 2), nullable=False)
    price_tier = Column(
        Enum(PriceTier, name='price_tier', values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    line_subtotal = Column(Numeric(12, 2), nullable=False)
    savings = Column(Numeric(12, 2), nullable=False, default=0)
    sale_format = Column(
        Enum(SaleFormat, name='sale_format', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SaleFormat.UNIT
    )

    # Relationships
    sale = relationship('Sale', back_populates='lines')
    lot = relationship('StockLot')
    product = relationship('Product')

    def __repr__(self):
        return (
            f"<SaleLineItem(id={self.id}, lot_id={self.lot_id}, "
            f"quantity_sold={self.quantity_sold}, price_tier={self.price_tier.value})>"
        )
