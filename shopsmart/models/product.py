"""Product model."""
from decimal import Decimal

from sqlalchemy import Column, BigInteger, Integer, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from shopsmart.database import Base


class Product(Base):
    """Product model."""

    __tablename__ = 'products'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String(255), nullable=True)  # Relative path: /images/products/uploads/<file>

    # Sale pricing: on_sale_quantity units are sold at sale_price
    is_on_sale = Column(Boolean, nullable=False, default=False, server_default='0')
    sale_price = Column(Numeric(10, 2), nullable=True)
    on_sale_quantity = Column(Integer, nullable=False, default=0, server_default='0')

    # Inventory
    regular_inventory = Column(Integer, nullable=False, default=0, server_default='0')
    low_stock_threshold = Column(Integer, nullable=False, default=5, server_default='5')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"

    @property
    def total_inventory(self):
        """Units available at either price."""
        return (self.regular_inventory or 0) + (self.on_sale_quantity or 0)

    @property
    def is_low_stock(self):
        return self.total_inventory <= (self.low_stock_threshold or 0)

    @property
    def effective_price(self):
        """Price of the next unit sold."""
        if self.is_on_sale and self.sale_price is not None and (self.on_sale_quantity or 0) > 0:
            return self.sale_price
        return self.price

    @property
    def image_thumbnail(self):
        """
        Relative path of the thumbnail variant of the product image.

        Derived from the stored original path; the file itself may not exist.
        """
        if not self.image:
            return None
        from shopsmart.services.image_storage_service import (
            THUMBNAILS_PREFIX, UPLOADS_PREFIX
        )
        if not self.image.startswith(UPLOADS_PREFIX):
            return None
        return THUMBNAILS_PREFIX + self.image[len(UPLOADS_PREFIX):]

    def to_snapshot(self):
        """Sale-relevant view of the product consumed by the cart."""
        from shopsmart.services.cart_service import ProductSnapshot
        return ProductSnapshot(
            id=self.id,
            price=Decimal(str(self.price)),
            sale_price=Decimal(str(self.sale_price)) if self.sale_price is not None else None,
            is_on_sale=bool(self.is_on_sale),
            on_sale_quantity_remaining=self.on_sale_quantity or 0,
            name=self.name,
            image=self.image
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': float(self.price) if self.price is not None else None,
            'image': self.image,
            'thumbnail': self.image_thumbnail,
            'isOnSale': bool(self.is_on_sale),
            'salePrice': float(self.sale_price) if self.sale_price is not None else None,
            'onSaleQuantity': self.on_sale_quantity,
            'regularInventory': self.regular_inventory,
            'lowStockThreshold': self.low_stock_threshold,
            'isLowStock': self.is_low_stock,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
