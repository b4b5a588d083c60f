"""
Integration tests for sale confirmation.
These tests check that a sale is persisted atomically with its lot decrements.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import text

from lotpos.exceptions import (
    ExpiredLotError, InsufficientStockError, PersistenceError, ValidationError
)
from lotpos.models import DiscountKind, PriceTier, Sale, SaleFormat, SaleLineItem
from lotpos.services import sales_service
from lotpos.services.checkout_lines import AutomaticLine, Discount, OverrideLine
from lotpos.services.consumption_planner import plan_override
from lotpos.services.sales_service import checkout, confirm_sale, format_sale, get_sale


class TestConfirmSale:
    """Tests for the happy path."""

    def test_multi_lot_sale_with_wholesale(self, session, product, make_lot, lot_quantity, today):
        """Test that 120 units are drawn from the expiring lot first, both at wholesale."""
        lot_a = make_lot(product, 100, '1000', wholesale_price='800',
                         expiration_date=date(2025, 6, 1), created_at=datetime(2025, 3, 1))
        lot_b = make_lot(product, 50, '1000', wholesale_price='750',
                         created_at=datetime(2025, 1, 1))
        lot_a_id, lot_b_id = lot_a.id, lot_b.id

        sale = confirm_sale(session, [AutomaticLine(product.id, 120)], 'seller-1', today=today)

        assert sale.id is not None
        assert sale.subtotal == Decimal('95000.00')
        assert sale.total_amount == Decimal('95000.00')
        assert sale.total_savings == Decimal('25000.00')
        assert [(line.lot_id, line.quantity_sold, line.price_applied) for line in sale.lines] == [
            (lot_a_id, 100, Decimal('800.00')),
            (lot_b_id, 20, Decimal('750.00')),
        ]
        assert all(line.price_tier == PriceTier.WHOLESALE for line in sale.lines)

        assert lot_quantity(lot_a_id) == 0
        assert lot_quantity(lot_b_id) == 30

    def test_mixed_tier_sale(self, session, product, make_lot, today):
        """Test that a 2-unit allocation stays at unit price while a 3-unit one gets wholesale."""
        make_lot(product, 2, '1000', wholesale_price='800', expiration_date=date(2025, 6, 1))
        make_lot(product, 10, '1000', wholesale_price='750')

        sale = confirm_sale(session, [AutomaticLine(product.id, 5)], 'seller-1', today=today)

        assert [(line.quantity_sold, line.price_tier) for line in sale.lines] == [
            (2, PriceTier.UNIT),
            (3, PriceTier.WHOLESALE),
        ]
        assert sale.subtotal == Decimal('4250.00')

    def test_percentage_discount(self, session, product, make_lot, today):
        make_lot(product, 20, '1000')

        sale = confirm_sale(
            session, [AutomaticLine(product.id, 10)], 'seller-1',
            discount=Discount(DiscountKind.PERCENTAGE, Decimal('10')), today=today,
        )

        assert sale.subtotal == Decimal('10000.00')
        assert sale.discount_kind == DiscountKind.PERCENTAGE
        assert sale.discount_amount == Decimal('1000.00')
        assert sale.total_amount == Decimal('9000.00')

    def test_lines_of_several_products(self, session, product, other_product, make_lot, lot_quantity, today):
        yerba = make_lot(product, 10, '3200')
        azucar = make_lot(other_product, 10, '900', wholesale_price='850')
        yerba_id, azucar_id = yerba.id, azucar.id

        sale = confirm_sale(
            session,
            [AutomaticLine(product.id, 1), AutomaticLine(other_product.id, 4, SaleFormat.DISPLAY)],
            'seller-2', today=today,
        )

        assert len(sale.lines) == 2
        assert sale.lines[1].sale_format == SaleFormat.DISPLAY
        assert sale.subtotal == Decimal('6600.00')
        assert lot_quantity(yerba_id) == 9
        assert lot_quantity(azucar_id) == 6

    def test_lines_sharing_a_lot_are_decremented_once_in_total(self, session, product, make_lot, lot_quantity, today):
        lot = make_lot(product, 6, '500')
        lot_id = lot.id

        sale = confirm_sale(
            session, [AutomaticLine(product.id, 2), AutomaticLine(product.id, 4)], 'seller-1', today=today
        )

        assert [line.quantity_sold for line in sale.lines] == [2, 4]
        assert lot_quantity(lot_id) == 0

    def test_override_line_keeps_operator_price(self, session, product, make_lot, lot_quantity, today):
        lot = make_lot(product, 10, '1000', wholesale_price='800')
        lot_id = lot.id

        sale = confirm_sale(
            session, [OverrideLine(lot_id, 2, Decimal('900'))], 'seller-1', today=today
        )

        line = sale.lines[0]
        assert line.lot_id == lot_id
        assert line.price_applied == Decimal('900.00')
        assert line.price_tier == PriceTier.UNIT
        assert line.line_subtotal == line.price_applied * line.quantity_sold
        assert line.savings == Decimal('200.00')
        assert sale.total_savings == Decimal('200.00')
        assert lot_quantity(lot_id) == 8


class TestConfirmSaleFailures:
    """Tests that failed checkouts leave no trace."""

    def test_insufficient_stock(self, session, product, make_lot, lot_quantity, today):
        first = make_lot(product, 25, '100')
        second = make_lot(product, 15, '100', expiration_date=date(2025, 9, 1))
        lot_ids = [first.id, second.id]

        with pytest.raises(InsufficientStockError) as exc_info:
            confirm_sale(session, [AutomaticLine(product.id, 50)], 'seller-1', today=today)

        assert exc_info.value.available == 40
        assert [lot_quantity(lot_id) for lot_id in lot_ids] == [25, 15]
        assert session.query(Sale).count() == 0

    def test_two_lines_cannot_oversell_one_lot(self, session, product, make_lot, lot_quantity, today):
        lot = make_lot(product, 5, '100')
        lot_id = lot.id

        with pytest.raises(InsufficientStockError) as exc_info:
            confirm_sale(
                session, [AutomaticLine(product.id, 4), AutomaticLine(product.id, 4)], 'seller-1', today=today
            )

        assert exc_info.value.available == 1
        assert lot_quantity(lot_id) == 5

    def test_expired_lot_is_refused(self, session, product, make_lot, lot_quantity, today):
        lot = make_lot(product, 10, '100', expiration_date=date(2025, 4, 30))
        lot_id = lot.id

        with pytest.raises(ExpiredLotError) as exc_info:
            confirm_sale(session, [AutomaticLine(product.id, 1)], 'seller-1', today=today)

        assert exc_info.value.lot_id == lot_id
        assert lot_quantity(lot_id) == 10
        assert session.query(Sale).count() == 0

    def test_seller_is_required(self, session, product, make_lot, today):
        make_lot(product, 10, '100')

        with pytest.raises(ValidationError, match='Seller identity is required'):
            confirm_sale(session, [AutomaticLine(product.id, 1)], '  ', today=today)

    def test_empty_cart(self, session, today):
        with pytest.raises(ValidationError, match='The cart is empty'):
            confirm_sale(session, [], 'seller-1', today=today)

    def test_unknown_product(self, session, today):
        with pytest.raises(ValidationError, match='Unknown product 999'):
            confirm_sale(session, [AutomaticLine(999, 1)], 'seller-1', today=today)

    def test_inactive_product(self, session, product, make_lot, today):
        make_lot(product, 10, '100')
        product.active = False
        session.commit()

        with pytest.raises(ValidationError, match='is not active'):
            confirm_sale(session, [AutomaticLine(product.id, 1)], 'seller-1', today=today)

    def test_storage_failure_rolls_back_everything(self, session, product, make_lot, lot_quantity, today, monkeypatch):
        """Test that a failing decrement discards the sale header and line items too."""
        lot = make_lot(product, 10, '100')
        lot_id = lot.id
        monkeypatch.setattr(
            sales_service, '_DECREMENT_LOT',
            text('UPDATE missing_table SET current_quantity = current_quantity - :qty WHERE id = :lot_id')
        )

        with pytest.raises(PersistenceError) as exc_info:
            confirm_sale(session, [AutomaticLine(product.id, 3)], 'seller-1', today=today)

        assert exc_info.value.status_code == 500
        assert lot_quantity(lot_id) == 10
        assert session.query(Sale).count() == 0
        assert session.query(SaleLineItem).count() == 0

    def test_sub_cent_override_price_is_refused(self, session, product, make_lot, lot_quantity, today):
        """Test that a price the money columns cannot store exactly never reaches them."""
        lot = make_lot(product, 10, '100')
        lot_id = lot.id

        with pytest.raises(ValidationError, match='at most 2 decimal places'):
            confirm_sale(session, [OverrideLine(lot_id, 3, Decimal('0.005'))], 'seller-1', today=today)

        with pytest.raises(ValidationError):
            plan_override(session, OverrideLine(lot_id, 1, Decimal('9.999')), today)

        assert lot_quantity(lot_id) == 10
        assert session.query(Sale).count() == 0


class TestCheckoutResult:
    """Tests for the result dict and sale lookup."""

    def test_checkout_returns_formatted_sale(self, session, product, make_lot, today):
        lot = make_lot(product, 10, '1000', wholesale_price='800')
        lot_id = lot.id

        result = checkout(session, [AutomaticLine(product.id, 3)], 'seller-9', today=today)

        assert result['success'] is True
        assert result['seller_id'] == 'seller-9'
        assert result['discount'] is None
        assert result['subtotal'] == Decimal('2400.00')
        assert result['line_items'] == [{
            'lot_id': lot_id,
            'product_id': product.id,
            'quantity_sold': 3,
            'price_applied': Decimal('800.00'),
            'price_tier': 'wholesale',
            'line_subtotal': Decimal('2400.00'),
            'sale_format': 'unit',
        }]

    def test_checkout_reports_errors_instead_of_raising(self, session, product, make_lot, today):
        make_lot(product, 2, '1000')

        result = checkout(session, [AutomaticLine(product.id, 3)], 'seller-9', today=today)

        assert result['success'] is False
        assert result['error']['kind'] == 'insufficient_stock'
        assert result['error']['details']['available'] == 2

    def test_get_sale_round_trips_through_storage(self, session, product, make_lot, today):
        make_lot(product, 10, '150')
        sale = confirm_sale(
            session, [AutomaticLine(product.id, 4)], 'seller-1',
            discount=Discount(DiscountKind.AMOUNT, Decimal('100')), today=today,
        )
        sale_id = sale.id
        session.expire_all()

        loaded = get_sale(session, sale_id)
        formatted = format_sale(loaded)

        assert formatted['sale_id'] == sale_id
        assert formatted['discount'] == {'kind': 'amount', 'value': Decimal('100.00')}
        assert formatted['total_amount'] == Decimal('500.00')
        assert len(formatted['line_items']) == 1

    def test_get_unknown_sale(self, session):
        with pytest.raises(ValidationError):
            get_sale(session, 12345)
