"""Models package - exports all SQLAlchemy models."""
from lotpos.models.product import Product
from lotpos.models.stock_lot import StockLot
from lotpos.models.sale import Sale, DiscountKind
from lotpos.models.sale_line_item import SaleLineItem, PriceTier, SaleFormat

__all__ = [
    'Product', 'StockLot',
    'Sale', 'DiscountKind',
    'SaleLineItem', 'PriceTier', 'SaleFormat',
]
