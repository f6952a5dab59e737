"""
Product catalog queries and writes shared by the storefront and admin APIs.
"""
import logging
import math
import threading
from typing import Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func, or_

from shopsmart.database import db_session
from shopsmart.exceptions import BusinessLogicError, NotFoundError
from shopsmart.models import Product

logger = logging.getLogger(__name__)

# Serializes image replace/delete per product within this process
_image_locks_guard = threading.Lock()
_image_locks: Dict[int, threading.Lock] = {}

# API sort key -> column
SORTABLE_FIELDS = {
    'id': Product.id,
    'name': Product.name,
    'price': Product.price,
    'regularInventory': Product.regular_inventory,
    'onSaleQuantity': Product.on_sale_quantity,
    'createdAt': Product.created_at,
    'updatedAt': Product.updated_at,
}

# API field -> model attribute
EDITABLE_FIELDS = {
    'name': 'name',
    'description': 'description',
    'price': 'price',
    'isOnSale': 'is_on_sale',
    'salePrice': 'sale_price',
    'onSaleQuantity': 'on_sale_quantity',
    'regularInventory': 'regular_inventory',
    'lowStockThreshold': 'low_stock_threshold',
    'image': 'image',
}


def get_product(product_id: int) -> Product:
    """
    Raises:
        NotFoundError: No product with that id
    """
    product = db_session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')
    return product


def _parse_positive_int(value, default: int, name: str) -> int:
    if value in (None, ''):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f'Invalid {name}: {value}')
    if parsed < 1:
        raise BusinessLogicError(f'Invalid {name}: {value}')
    return parsed


def search_products(search: Optional[str] = None, sort: str = 'id', order: str = 'asc',
                    page=None, limit=None) -> Tuple[List[Product], Dict]:
    """
    Paginated product search over name and description.

    Returns:
        (products, pagination) where pagination carries total, page, limit,
        totalPages, hasNextPage and hasPrevPage

    Raises:
        BusinessLogicError: Unknown sort field/order or bad paging values
    """
    if sort not in SORTABLE_FIELDS:
        raise BusinessLogicError(
            f"Invalid sort field: {sort}. Allowed: {', '.join(SORTABLE_FIELDS)}"
        )
    order = (order or 'asc').lower()
    if order not in ('asc', 'desc'):
        raise BusinessLogicError(f'Invalid sort order: {order}')

    page = _parse_positive_int(page, 1, 'page')
    limit = _parse_positive_int(limit, current_app.config.get('DEFAULT_PAGE_SIZE', 10), 'limit')
    limit = min(limit, current_app.config.get('MAX_PAGE_SIZE', 100))

    query = db_session.query(Product)
    if search:
        pattern = f'%{search.strip().lower()}%'
        query = query.filter(or_(
            func.lower(Product.name).like(pattern),
            func.lower(func.coalesce(Product.description, '')).like(pattern)
        ))

    total = query.count()
    column = SORTABLE_FIELDS[sort]
    query = query.order_by(column.desc() if order == 'desc' else column.asc(), Product.id.asc())
    products = query.offset((page - 1) * limit).limit(limit).all()

    total_pages = math.ceil(total / limit) if total else 0
    pagination = {
        'total': total,
        'page': page,
        'limit': limit,
        'totalPages': total_pages,
        'hasNextPage': page < total_pages,
        'hasPrevPage': page > 1,
    }
    return products, pagination


def list_storefront_products(search: Optional[str] = None, on_sale_only: bool = False) -> List[Product]:
    query = db_session.query(Product)
    if search:
        query = query.filter(func.lower(Product.name).like(f'%{search.strip().lower()}%'))
    if on_sale_only:
        query = query.filter(Product.is_on_sale.is_(True), Product.on_sale_quantity > 0)
    return query.order_by(Product.name).all()


def apply_product_data(product: Product, data: Dict) -> Product:
    """Copy validated API fields onto a product (absent fields are left alone)."""
    for api_field, attribute in EDITABLE_FIELDS.items():
        if api_field in data:
            setattr(product, attribute, data[api_field])

    if not product.is_on_sale:
        product.sale_price = None
    if product.low_stock_threshold is None:
        product.low_stock_threshold = current_app.config.get('DEFAULT_LOW_STOCK_THRESHOLD', 5)
    return product


def create_product(data: Dict) -> Product:
    product = apply_product_data(Product(), data)
    db_session.add(product)
    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    logger.info(f"[CATALOG] Created product {product.id} '{product.name}'")
    return product


def update_product(product: Product, data: Dict) -> Product:
    apply_product_data(product, data)
    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    logger.info(f"[CATALOG] Updated product {product.id}")
    return product


def set_product_image(product: Product, relative_path: Optional[str]) -> Product:
    """Point a product at a stored image (commit only, no file handling)."""
    product.image = relative_path
    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return product


def delete_product(product: Product) -> None:
    product_id = product.id
    db_session.delete(product)
    try:
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise

    with _image_locks_guard:
        _image_locks.pop(product_id, None)
    logger.info(f"[CATALOG] Deleted product {product_id}")


def referenced_image_paths() -> List[str]:
    """Image paths stored on any product."""
    rows = db_session.query(Product.image).filter(Product.image.isnot(None)).all()
    return [row[0] for row in rows]


def product_image_lock(product_id: int) -> threading.Lock:
    """Lock held while a product's image pointer and files change."""
    with _image_locks_guard:
        lock = _image_locks.get(product_id)
        if lock is None:
            lock = threading.Lock()
            _image_locks[product_id] = lock
        return lock
