"""
Flask CLI commands for stock management.

Commands:
- flask init-db: Create the database tables
- flask add-product: Create a catalog product
- flask receive-lot: Record the intake of a stock lot
"""

import click
from lotpos.database import create_all, get_session
from lotpos.exceptions import ValidationError
from lotpos.services.stock_lot_service import create_product, receive_lot


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('add-product')
    @click.argument('name')
    @click.option('--barcode', default=None, help='Product barcode')
    def add_product(name, barcode):
        """Create a new product."""
        try:
            product = create_product(get_session(), name, barcode)
        except ValidationError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)
        click.echo(f'Product created: {product.name} (ID: {product.id})')

    @app.cli.command('receive-lot')
    @click.argument('product_id', type=int)
    @click.argument('quantity', type=int)
    @click.argument('unit_price')
    @click.option('--wholesale-price', default=None, help='Price per unit from 3 units taken')
    @click.option('--expires', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Expiration date (YYYY-MM-DD)')
    @click.option('--barcode', default=None, help='Lot barcode')
    @click.option('--purchase-price', default=None, help='Intake cost per unit')
    def receive_lot_command(product_id, quantity, unit_price, wholesale_price, expires, barcode, purchase_price):
        """Record a new stock lot for PRODUCT_ID."""
        try:
            lot = receive_lot(
                get_session(),
                product_id,
                quantity,
                unit_price,
                wholesale_price=wholesale_price,
                expiration_date=expires.date() if expires else None,
                barcode=barcode,
                purchase_price=purchase_price,
            )
        except ValidationError as e:
            get_session().rollback()
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(f'Lot {lot.id} received: {quantity} units', fg='green'))
