"""
Unit tests for SQLAlchemy models.
"""

import pytest
from decimal import Decimal
from shopsmart.models import Product, User, UserRole


class TestProductModel:
    """Tests for Product model."""

    def test_create_product_defaults(self, session):
        product = Product(name='Smart Watch', price=Decimal('299.99'))
        session.add(product)
        session.commit()

        assert product.id is not None
        assert product.is_on_sale is False
        assert product.on_sale_quantity == 0
        assert product.regular_inventory == 0
        assert product.low_stock_threshold == 5
        assert product.created_at is not None

    def test_inventory_and_low_stock(self, sale_product, regular_product):
        assert sale_product.total_inventory == 12
        assert sale_product.is_low_stock is False
        assert regular_product.total_inventory == 3
        assert regular_product.is_low_stock is True

    def test_effective_price(self, sale_product, regular_product):
        assert sale_product.effective_price == Decimal('80.00')
        assert regular_product.effective_price == Decimal('129.99')

        sale_product.on_sale_quantity = 0
        assert sale_product.effective_price == Decimal('100.00')

    def test_thumbnail_is_derived_from_image(self):
        product = Product(name='Speaker', price=Decimal('89.99'))
        assert product.image_thumbnail is None

        product.image = '/images/products/uploads/123-abc-speaker.jpg'
        assert product.image_thumbnail == '/images/products/thumbnails/123-abc-speaker.jpg'

        product.image = '/images/products/speaker.jpg'
        assert product.image_thumbnail is None

    def test_to_snapshot(self, sale_product):
        snapshot = sale_product.to_snapshot()

        assert snapshot.id == sale_product.id
        assert snapshot.price == Decimal('100.00')
        assert snapshot.sale_price == Decimal('80.00')
        assert snapshot.on_sale_quantity_remaining == 2
        assert snapshot.sale_available is True

    def test_to_dict(self, sale_product):
        data = sale_product.to_dict()

        assert data['name'] == 'Premium Coffee Maker'
        assert data['price'] == 100.0
        assert data['salePrice'] == 80.0
        assert data['isOnSale'] is True
        assert data['onSaleQuantity'] == 2
        assert data['regularInventory'] == 10
        assert data['thumbnail'] is None
        assert data['createdAt'] is not None


class TestUserModel:
    """Tests for User model."""

    def test_password_hashing(self):
        user = User(email='user@test.com')
        user.set_password('mypassword')

        assert user.password_hash != 'mypassword'
        assert user.check_password('mypassword') is True
        assert user.check_password('wrongpassword') is False

    def test_default_role_is_customer(self, session):
        user = User(email='role@test.com')
        user.set_password('password123')
        session.add(user)
        session.commit()

        assert user.role == UserRole.CUSTOMER.value
        assert user.is_admin is False

    def test_email_unique(self, session, customer):
        duplicate = User(email=customer.email)
        duplicate.set_password('password123')
        session.add(duplicate)

        with pytest.raises(Exception):  # IntegrityError
            session.commit()

    def test_to_dict_hides_password(self, admin):
        data = admin.to_dict()

        assert data['role'] == 'admin'
        assert 'password_hash' not in data
        assert 'passwordHash' not in data
