"""
Admin Blueprint - product management API.

Routes (all admin only):
- GET    /api/admin/products              - Search, sort and paginate products
- POST   /api/admin/products              - Create product
- GET    /api/admin/products/<id>         - Product detail
- PUT    /api/admin/products/<id>         - Update product (image pointer included)
- DELETE /api/admin/products/<id>         - Delete product and its image files
- POST   /api/admin/products/<id>/image   - Upload image for product
- PUT    /api/admin/products/<id>/image   - Replace product image
- POST   /api/admin/upload/image          - Upload image without a product

Image files follow the product pointer: the pointer is committed first and
the file it replaced is deleted afterwards, so a product never references a
file that is gone. Cleanup problems are reported, never fatal.
"""
import logging
from typing import Dict, Optional, Tuple

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from shopsmart.decorators.permissions import require_admin
from shopsmart.exceptions import BusinessLogicError
from shopsmart.forms.product_forms import ProductForm
from shopsmart.middleware import get_json_object
from shopsmart.models import Product
from shopsmart.services import product_service
from shopsmart.services.image_processing_service import (
    discard_uploaded_image, get_image_info, save_uploaded_image
)
from shopsmart.services.image_storage_service import get_image_storage

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _public_upload_info(image_info: Dict) -> Dict:
    """Upload details safe to return to clients (no server paths)."""
    return {k: v for k, v in image_info.items() if k != 'absolutePath'}


def _replacement_report(old_path: Optional[str], new_path: Optional[str], outcome: Dict) -> Dict:
    return {
        'oldImagePath': old_path,
        'newImagePath': new_path,
        'oldImageCleanup': outcome['oldImageCleanup'],
        'success': outcome['success'],
        'errors': outcome['errors'],
    }


def _cleanup_report(old_path: Optional[str]) -> Dict:
    """Delete the files behind a pointer that was just dropped."""
    if not old_path:
        return {'attempted': False, 'success': True, 'deletedFiles': [], 'errors': []}
    outcome = get_image_storage().delete_product_image(old_path)
    return {'attempted': True, **outcome}


def _require_existing_image(relative_path: str) -> None:
    validation = get_image_storage().validate_image_exists(relative_path)
    if not validation['exists']:
        raise BusinessLogicError(validation.get('error', 'Image file does not exist'),
                                 payload={'image': relative_path})


@admin_bp.route('/products', methods=['GET'])
@require_admin
def list_products():
    products, pagination = product_service.search_products(
        search=request.args.get('search', '').strip() or None,
        sort=request.args.get('sort', 'id'),
        order=request.args.get('order', 'asc'),
        page=request.args.get('page'),
        limit=request.args.get('limit')
    )
    return jsonify({
        'products': [p.to_dict() for p in products],
        'pagination': pagination
    })


@admin_bp.route('/products', methods=['POST'])
@require_admin
def create_product():
    data = ProductForm.from_payload(get_json_object()).validated_data()
    if data['image']:
        _require_existing_image(data['image'])

    product = product_service.create_product(data)
    logger.info(f"[ADMIN] {g.user.email} created product {product.id}")

    return jsonify({
        'message': 'Product created successfully',
        'product': product.to_dict()
    }), 201


@admin_bp.route('/products/<int:product_id>', methods=['GET'])
@require_admin
def product_detail(product_id: int):
    """Product record plus the stored file details of its image (None when missing)."""
    product = product_service.get_product(product_id)
    image_info = get_image_info(product.image)
    return jsonify({
        'product': product.to_dict(),
        'imageInfo': _public_upload_info(image_info) if image_info else None
    })


@admin_bp.route('/products/<int:product_id>', methods=['PUT'])
@require_admin
def update_product(product_id: int):
    """Update fields; a changed image pointer deletes the previous files."""
    with product_service.product_image_lock(product_id):
        product = product_service.get_product(product_id)
        data = ProductForm.from_payload(get_json_object(), product=product).validated_data()

        old_image = product.image
        new_image = data['image']
        if new_image and new_image != old_image:
            _require_existing_image(new_image)

        product_service.update_product(product, data)

        response = {
            'message': 'Product updated successfully',
            'product': product.to_dict()
        }
        if new_image != old_image:
            if new_image:
                outcome = get_image_storage().replace_product_image(old_image, new_image)
                response['imageReplacement'] = _replacement_report(old_image, new_image, outcome)
            else:
                response['imageCleanup'] = _cleanup_report(old_image)

    logger.info(f"[ADMIN] {g.user.email} updated product {product_id}")
    return jsonify(response)


@admin_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_admin
def delete_product(product_id: int):
    """Delete the record, then both files of its image."""
    with product_service.product_image_lock(product_id):
        product = product_service.get_product(product_id)
        image_path = product.image

        product_service.delete_product(product)
        image_cleanup = _cleanup_report(image_path)

    if image_cleanup['errors']:
        logger.warning(f"[ADMIN] Product {product_id} deleted, image cleanup failed: {image_cleanup['errors']}")
    logger.info(f"[ADMIN] {g.user.email} deleted product {product_id}")

    return jsonify({
        'message': 'Product deleted successfully',
        'imageCleanup': image_cleanup
    })


def _store_product_image(product_id: int) -> Tuple[Product, Dict, Dict]:
    """
    Upload request.files['image'] and point the product at it.

    The upload is removed again when the product cannot be updated.
    """
    with product_service.product_image_lock(product_id):
        product = product_service.get_product(product_id)
        image_info = save_uploaded_image(request.files.get('image'))

        old_image = product.image
        new_image = image_info['relativePath']
        try:
            product_service.set_product_image(product, new_image)
        except SQLAlchemyError as e:
            logger.error(f"[ADMIN] Could not attach image to product {product_id}: {e}")
            discard_uploaded_image(image_info)
            raise

        outcome = get_image_storage().replace_product_image(old_image, new_image)
        return product, image_info, _replacement_report(old_image, new_image, outcome)


@admin_bp.route('/products/<int:product_id>/image', methods=['POST'])
@require_admin
def upload_product_image(product_id: int):
    product, image_info, replacement = _store_product_image(product_id)
    logger.info(f"[ADMIN] {g.user.email} uploaded image for product {product_id}")

    return jsonify({
        'message': 'Product image uploaded successfully',
        'product': product.to_dict(),
        'image': _public_upload_info(image_info),
        'imageReplacement': replacement
    })


@admin_bp.route('/products/<int:product_id>/image', methods=['PUT'])
@require_admin
def replace_product_image(product_id: int):
    product, image_info, replacement = _store_product_image(product_id)
    logger.info(f"[ADMIN] {g.user.email} replaced image of product {product_id}")

    return jsonify({
        'message': 'Product image replaced successfully',
        'product': product.to_dict(),
        'image': _public_upload_info(image_info),
        'replacement': replacement
    })


@admin_bp.route('/upload/image', methods=['POST'])
@require_admin
def upload_image():
    """Store an image for a product that does not exist yet."""
    image_info = save_uploaded_image(request.files.get('image'))
    return jsonify({
        'message': 'Image uploaded successfully',
        'image': _public_upload_info(image_info)
    }), 201
