"""Sales blueprint - JSON endpoints for cart validation and checkout."""
from flask import Blueprint, current_app, jsonify, request

from lotpos.database import get_session
from lotpos.exceptions import ValidationError
from lotpos.services.cart_validator import validate_cart
from lotpos.services.checkout_lines import parse_discount, parse_lines
from lotpos.services.sales_service import confirm_sale, format_sale, get_sale

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError('Expected a JSON object body')
    return body


@sales_bp.route('/cart/validate', methods=['POST'])
def validate_cart_route():
    """Advisory check of proposed lines; never mutates stock."""
    body = _json_body()
    lines = parse_lines(body.get('lines'))
    discount = parse_discount(body.get('discount'))

    result = validate_cart(get_session(), lines, discount)
    return jsonify(result.to_dict())


@sales_bp.route('/checkout', methods=['POST'])
def checkout_route():
    """Commit a sale. Errors are rendered by the application's PosError handler."""
    body = _json_body()
    lines = parse_lines(body.get('lines'))
    discount = parse_discount(body.get('discount'))

    sale = confirm_sale(get_session(), lines, body.get('seller_id'), discount)
    current_app.logger.info(f"Checkout completed: sale {sale.id}")
    return jsonify(format_sale(sale))


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def sale_detail(sale_id):
    sale = get_sale(get_session(), sale_id)
    return jsonify(format_sale(sale))
