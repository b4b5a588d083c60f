"""Product model."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lotpos.database import Base, BigIntPK


class Product(Base):
    """Catalog product; stock lives in its lots."""

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    barcode = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    lots = relationship('StockLot', back_populates='product')

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"
