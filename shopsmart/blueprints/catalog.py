"""Catalog blueprint: public product listing and product image files."""
import logging

from flask import Blueprint, abort, jsonify, request, send_from_directory

from shopsmart.services.image_storage_service import get_image_storage
from shopsmart.services.product_service import get_product, list_storefront_products

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__)


@catalog_bp.route('/api/products', methods=['GET'])
def list_products():
    """All products, optionally filtered by name (?q=) or to current sales (?onSale=true)."""
    search = request.args.get('q', '').strip()
    on_sale_only = request.args.get('onSale', '').lower() in ('1', 'true', 'yes')

    products = list_storefront_products(search=search or None, on_sale_only=on_sale_only)
    return jsonify({'products': [p.to_dict() for p in products]})


@catalog_bp.route('/api/products/<int:product_id>', methods=['GET'])
def product_detail(product_id: int):
    return jsonify({'product': get_product(product_id).to_dict()})


@catalog_bp.route('/images/products/<any(uploads, thumbnails):variant_dir>/<path:filename>')
def product_image(variant_dir: str, filename: str):
    """Serve stored image files at the same path products reference."""
    storage = get_image_storage()
    directory = storage.uploads_dir if variant_dir == 'uploads' else storage.thumbnails_dir
    if '/' in filename:
        abort(404)
    return send_from_directory(directory, filename)
