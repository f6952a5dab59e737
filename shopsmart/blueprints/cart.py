"""
Cart blueprint.

The cart lives in the signed session cookie; every route rebuilds a
CartSession over it, applies one command and returns the whole cart.
"""
import logging

from flask import Blueprint, current_app, jsonify

from shopsmart.exceptions import BusinessLogicError
from shopsmart.middleware import get_json_object
from shopsmart.services.cart_service import CartSession
from shopsmart.services.product_service import get_product
from shopsmart.services.session_storage import FlaskSessionStorage

logger = logging.getLogger(__name__)

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


def get_cart() -> CartSession:
    return CartSession(FlaskSessionStorage(), current_app.config.get('CART_SESSION_KEY', 'cart'))


def _parse_quantity(value, default=None, minimum=1) -> int:
    if value is None:
        if default is None:
            raise BusinessLogicError('Quantity is required')
        return default
    if isinstance(value, bool):
        raise BusinessLogicError('Quantity must be an integer')
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError('Quantity must be an integer')
    if quantity < minimum:
        raise BusinessLogicError(f'Quantity must be at least {minimum}')
    maximum = current_app.config.get('MAX_CART_QUANTITY', 999)
    if quantity > maximum:
        raise BusinessLogicError(f'Quantity must be at most {maximum}')
    return quantity


@cart_bp.route('', methods=['GET'])
def view_cart():
    return jsonify(get_cart().to_dict())


@cart_bp.route('/items', methods=['POST'])
def add_item():
    """Add units of a product; sale units first, up to the product's sale allocation."""
    data = get_json_object()
    if data.get('productId') is None:
        raise BusinessLogicError('productId is required')
    try:
        product_id = int(data['productId'])
    except (TypeError, ValueError):
        raise BusinessLogicError('productId must be an integer')
    quantity = _parse_quantity(data.get('quantity'), default=1)

    product = get_product(product_id)
    cart = get_cart()
    cart.add_to_cart(product.to_snapshot(), quantity)

    logger.info(f"[CART] Added {quantity} x product {product_id}")
    return jsonify(cart.to_dict()), 201


@cart_bp.route('/items/<int:product_id>', methods=['PATCH'])
def update_item(product_id: int):
    """
    Set the quantity of a product's line.

    isSalePriced selects the bucket when the product is in the cart at both
    prices; quantity 0 removes the product.
    """
    data = get_json_object()
    quantity = _parse_quantity(data.get('quantity'), minimum=0)

    is_sale_priced = data.get('isSalePriced')
    if is_sale_priced is not None and not isinstance(is_sale_priced, bool):
        raise BusinessLogicError('isSalePriced must be a boolean')

    cart = get_cart()
    cart.update_quantity(product_id, quantity, is_sale_priced)
    return jsonify(cart.to_dict())


@cart_bp.route('/items/<int:product_id>', methods=['DELETE'])
def remove_item(product_id: int):
    cart = get_cart()
    cart.remove_from_cart(product_id)
    return jsonify(cart.to_dict())


@cart_bp.route('', methods=['DELETE'])
def clear_cart():
    cart = get_cart()
    cart.clear_cart()
    return jsonify(cart.to_dict())
