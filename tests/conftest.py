import io
import uuid
from decimal import Decimal

import pytest
from PIL import Image

from config import TestConfig
from shopsmart import create_app
from shopsmart.database import create_tables, db_session, drop_tables
from shopsmart.models import Product, User, UserRole
from shopsmart.services.auth_service import generate_token
from shopsmart.services.image_storage_service import ImageStorageService


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application instance with its own SQLite file and image root."""

    class IsolatedTestConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"
        IMAGES_ROOT = str(tmp_path / 'public')

    app = create_app(IsolatedTestConfig)
    with app.app_context():
        create_tables()
        yield app
        db_session.remove()
        drop_tables()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    yield db_session
    db_session.rollback()


@pytest.fixture(scope='function')
def storage(app):
    """Image storage bound to the test app."""
    return app.extensions['image_storage']


@pytest.fixture
def tmp_storage(tmp_path):
    """Standalone image storage with its directories created."""
    storage = ImageStorageService(str(tmp_path / 'images-root'))
    storage.ensure_directories_exist()
    return storage


def _make_user(session, role):
    suffix = str(uuid.uuid4())[:8]
    user = User(
        email=f'{role}-{suffix}@test.com',
        first_name=role.capitalize(),
        last_name='Tester',
        role=role
    )
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def customer(session):
    """Create customer user (password: password123)."""
    return _make_user(session, UserRole.CUSTOMER.value)


@pytest.fixture(scope='function')
def admin(session):
    """Create admin user (password: password123)."""
    return _make_user(session, UserRole.ADMIN.value)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return {'Authorization': f'Bearer {generate_token(customer)}'}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return {'Authorization': f'Bearer {generate_token(admin)}'}


@pytest.fixture(scope='function')
def sale_product(session):
    """price=100, salePrice=80, two units at the sale price."""
    product = Product(
        name='Premium Coffee Maker',
        description='Automatic drip coffee maker with built-in grinder',
        price=Decimal('100.00'),
        is_on_sale=True,
        sale_price=Decimal('80.00'),
        on_sale_quantity=2,
        regular_inventory=10,
        low_stock_threshold=5
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def regular_product(session):
    product = Product(
        name='Mechanical Keyboard',
        description='RGB backlit mechanical gaming keyboard',
        price=Decimal('129.99'),
        is_on_sale=False,
        on_sale_quantity=0,
        regular_inventory=3,
        low_stock_threshold=5
    )
    session.add(product)
    session.commit()
    return product


def make_image_bytes(image_format='JPEG', size=(640, 480), color=(200, 30, 30)):
    """Encode a solid-color image in memory."""
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Factory: image_bytes('PNG', size=(10, 10))."""
    return make_image_bytes


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes('JPEG')


@pytest.fixture
def png_bytes():
    return make_image_bytes('PNG', size=(800, 200))
