"""Models package - exports all SQLAlchemy models."""
from shopsmart.models.user import User, UserRole
from shopsmart.models.product import Product

__all__ = ['User', 'UserRole', 'Product']
