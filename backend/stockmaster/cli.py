# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/stockmaster/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Add a few demo products with stock at the master location.
#
# Stock inspection:
# - python -m flask stock show [--location Plouis]
#   Print quantities per product at one location, or the Global total.
# - python -m flask stock clear --location Plouis [--yes]
#   Zero every quantity at a shop; each change gets an ADJUST movement.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import catalog_service
from .services.concurrency import commit_with_retry
from .services.reconciliation import build_engine
from .services.stock_store import StockStore


DEMO_PRODUCTS = [
    {"sku": "TS-001", "name": "Classic Tee White", "category": "Tops", "price_cents": 89500},
    {"sku": "TS-002", "name": "Classic Tee Black", "category": "Tops", "price_cents": 89500},
    {"sku": "JN-010", "name": "Slim Jeans Indigo", "category": "Bottoms", "price_cents": 249500, "promo_price_cents": 199500},
    {"sku": "CP-100", "name": "Canvas Cap", "category": "Accessories", "price_cents": 59500, "offers": "2 for 1000"},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing data is left alone."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@click.option('--quantity', default=20, show_default=True, help='Initial stock per product at the master location')
@with_appcontext
def seed_demo(quantity):
    """Add demo products; products whose SKU already exists are skipped."""
    engine = build_engine()
    master = current_app.config["MASTER_LOCATION"]
    created = 0

    for payload in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(sku=payload["sku"]).first():
            click.echo(f"WARN  {payload['sku']} already exists, skipping...")
            continue
        catalog_service.create_product(
            engine,
            payload=dict(payload),
            initial_stock={master: quantity},
            default_min_quantity=current_app.config["DEFAULT_MIN_QUANTITY"],
        )
        created += 1

    commit_with_retry()
    click.echo(f"PASS Created {created} demo product(s) with {quantity} unit(s) each at {master}.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('show')
@click.option('--location', default=None, help='Location to show (default: Global total)')
@with_appcontext
def show_stock(location):
    """Print per-product quantities."""
    global_view = current_app.config["GLOBAL_VIEW"]
    location = location or global_view
    if location != global_view and location not in current_app.config["STOCK_LOCATIONS"]:
        raise click.BadParameter(f"Unknown location: {location}", param_hint="--location")

    store = StockStore(db.session)
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    if not products:
        click.echo("No products.")
        return

    click.echo(f"{'SKU':<12} {'NAME':<32} {location.upper():>10}")
    for product in products:
        if location == global_view:
            quantity = store.aggregate(product.id)
        else:
            quantity = store.get_quantity(product.id, location)
        flag = "  LOW" if quantity <= product.min_quantity else ""
        click.echo(f"{product.sku:<12} {product.name[:32]:<32} {quantity:>10}{flag}")


@stock_group.command('clear')
@click.option('--location', required=True, help='Shop to clear')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def clear_stock(location, yes):
    """Zero all stock at one location, keeping a movement per product."""
    if location not in current_app.config["STOCK_LOCATIONS"]:
        raise click.BadParameter(f"Unknown location: {location}", param_hint="--location")
    if not yes:
        click.confirm(f"WARN This will set every quantity at {location} to 0. Are you sure?", abort=True)

    engine = build_engine()
    with engine.unit_of_work():
        cleared = catalog_service.clear_location(engine, location)
    click.echo(f"PASS Cleared {cleared} stock level(s) at {location}.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
