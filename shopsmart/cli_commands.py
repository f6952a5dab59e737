"""
Flask CLI commands for store management.

Commands:
- flask init-db: Create database tables
- flask seed-products: Insert the sample catalog
- flask create-admin: Create an admin user
- flask init-storage: Create the product image directories
- flask cleanup-orphans: Delete image files no product references
"""

import click
from decimal import Decimal
from flask import current_app
from shopsmart.database import create_tables, db_session
from shopsmart.exceptions import BusinessLogicError, ConflictError
from shopsmart.models import Product, UserRole

# name, price, description, sale price (None = not on sale), on-sale quantity
SAMPLE_PRODUCTS = [
    ('Premium Coffee Maker', '199.99', 'Automatic drip coffee maker with built-in grinder', '149.99', 5),
    ('Wireless Headphones', '149.99', 'Noise-cancelling Bluetooth headphones with 30-hour battery', '99.99', 10),
    ('Smart Watch', '299.99', 'Fitness tracking and notifications with OLED display', None, 0),
    ('Laptop Backpack', '79.99', 'Water-resistant backpack with USB charging port', '49.99', 15),
    ('Mechanical Keyboard', '129.99', 'RGB backlit mechanical gaming keyboard with Cherry MX switches', None, 0),
    ('Portable Speaker', '89.99', 'Waterproof Bluetooth speaker with 20-hour playtime', None, 0),
]

SAMPLE_REGULAR_INVENTORY = 20


def seed_products():
    """Insert SAMPLE_PRODUCTS that are not in the catalog yet. Returns the number added."""
    added = 0
    for name, price, description, sale_price, on_sale_quantity in SAMPLE_PRODUCTS:
        if db_session.query(Product).filter_by(name=name).first():
            continue
        db_session.add(Product(
            name=name,
            price=Decimal(price),
            description=description,
            is_on_sale=sale_price is not None,
            sale_price=Decimal(sale_price) if sale_price else None,
            on_sale_quantity=on_sale_quantity,
            regular_inventory=SAMPLE_REGULAR_INVENTORY,
            low_stock_threshold=current_app.config.get('DEFAULT_LOW_STOCK_THRESHOLD', 5)
        ))
        added += 1
    db_session.commit()
    return added


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_tables()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('seed-products')
    def seed_products_command():
        """Insert the sample product catalog (skips existing names)."""
        create_tables()
        try:
            added = seed_products()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error seeding products: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'✅ {added} sample products added', fg='green'))

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--first-name', default=None, help='First name')
    @click.option('--last-name', default=None, help='Last name')
    def create_admin(email, password, first_name, last_name):
        """Create a new admin user."""
        from shopsmart.services.auth_service import register_user

        create_tables()
        try:
            admin = register_user(email, password, first_name, last_name, role=UserRole.ADMIN.value)
        except (BusinessLogicError, ConflictError) as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\n✅ Admin user created!', fg='green', bold=True))
        click.echo(f'   Email: {admin.email}')
        click.echo(f'   ID: {admin.id}')

    @app.cli.command('init-storage')
    def init_storage():
        """Create the product image directories."""
        from shopsmart.services.image_storage_service import get_image_storage

        storage = get_image_storage()
        storage.ensure_directories_exist()
        click.echo(click.style(f'✅ Image storage ready at {storage.base_dir}', fg='green'))

    @app.cli.command('cleanup-orphans')
    @click.option('--dry-run', is_flag=True, help='List orphaned images without deleting them')
    def cleanup_orphans(dry_run):
        """Delete stored image files that no product references."""
        from shopsmart.services.image_storage_service import get_image_storage
        from shopsmart.services.product_service import referenced_image_paths

        storage = get_image_storage()
        outcome = storage.cleanup_orphaned_images(referenced_image_paths(), dry_run=dry_run)

        for path in outcome['orphans']:
            click.echo(f'   {path}')

        if dry_run:
            click.echo(f"🔍 {len(outcome['orphans'])} orphaned images (dry run, nothing deleted)")
            return

        click.echo(click.style(
            f"✅ {outcome['totalDeleted']} files deleted, {outcome['totalErrors']} errors",
            fg='green' if outcome['success'] else 'yellow'
        ))
        for result in outcome['results']:
            for error in result['errors']:
                click.echo(click.style(f'   ❌ {error}', fg='red'))
