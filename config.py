"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (cart lives in the signed session cookie)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours
    CART_SESSION_KEY = os.getenv('CART_SESSION_KEY', 'cart')
    MAX_CART_QUANTITY = int(os.getenv('MAX_CART_QUANTITY', '999'))

    # Authentication (bearer JWT)
    JWT_SECRET = os.getenv('JWT_SECRET', SECRET_KEY)
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRATION_HOURS = int(os.getenv('JWT_EXPIRATION_HOURS', '24'))
    MIN_PASSWORD_LENGTH = int(os.getenv('MIN_PASSWORD_LENGTH', '8'))

    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', f"sqlite:///{os.path.join(BASE_DIR, 'shopping.db')}")

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Product images (served from IMAGES_ROOT/images/products/...)
    IMAGES_ROOT = os.getenv('IMAGES_ROOT', os.path.join(BASE_DIR, 'public'))

    # Upload constraints
    MAX_IMAGE_SIZE = int(os.getenv('MAX_IMAGE_SIZE', 5 * 1024 * 1024))  # 5MB
    MAX_CONTENT_LENGTH = MAX_IMAGE_SIZE + 64 * 1024  # multipart overhead
    ALLOWED_IMAGE_TYPES = {
        'image/jpeg',
        'image/png',
        'image/webp',
        'image/gif'
    }
    IMAGE_QUALITY = {
        'JPEG': 85,
        'PNG': 9,
        'WEBP': 80
    }
    THUMBNAIL_SIZE = (
        int(os.getenv('THUMBNAIL_WIDTH', '300')),
        int(os.getenv('THUMBNAIL_HEIGHT', '300'))
    )

    # Catalog
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '10'))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', '100'))
    DEFAULT_LOW_STOCK_THRESHOLD = int(os.getenv('DEFAULT_LOW_STOCK_THRESHOLD', '5'))


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_ECHO = False
    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'
