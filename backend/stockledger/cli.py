# Overview: Flask CLI command groups for bootstrap, catalog seeding and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog seeding (the catalog is owned elsewhere; these exist for local setups):
# - python -m flask catalog add-product --sku FR-100 --name "Frame Aviator"
# - python -m flask catalog add-location --code CEN --name "Sucursal Centro"
# - python -m flask catalog add-variant --color Black --brand "Ray-Ban"
# - python -m flask catalog seed-demo
#   Creates a handful of products, locations, variants and stock records.
#
# Stock inspection:
# - python -m flask stock list [--location-id 1] [--status low|out|normal]
#   List live stock records.
# - python -m flask stock alerts [--location-id 1]
#   List records at or below their reorder threshold.
# - python -m flask stock verify [--record-id 5]
#   Compare quantity_on_hand with the ledger fold; exits non-zero on drift.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import audit_sink, db
from .models import Location, Product, StockRecord, Variant
from .services.alert_service import list_stock_alerts
from .services.catalog_service import create_location, create_product, create_variant
from .validation import CreateStockRecordRequest, StockFilter, STATUS_FILTERS


def _services():
    return current_app.extensions["stockledger"]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the ledger history!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed-demo' for sample data.")


@click.group('catalog')
def catalog_group():
    """Catalog seeding commands (products, locations, variants)."""


@catalog_group.command('add-product')
@click.option('--sku', required=True, help='Product SKU')
@click.option('--name', required=True, help='Product name')
@with_appcontext
def add_product_cli(sku, name):
    try:
        product = create_product(db.session, sku=sku, name=name)
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Created product: {product.sku} - {product.name} (ID: {product.id})")


@catalog_group.command('add-location')
@click.option('--code', required=True, help='Location code')
@click.option('--name', required=True, help='Location name')
@with_appcontext
def add_location_cli(code, name):
    try:
        location = create_location(db.session, code=code, name=name)
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Created location: {location.code} - {location.name} (ID: {location.id})")


@catalog_group.command('add-variant')
@click.option('--color', required=True, help='Variant color')
@click.option('--brand', required=True, help='Variant brand')
@with_appcontext
def add_variant_cli(color, brand):
    try:
        variant = create_variant(db.session, color=color, brand=brand)
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Created variant: {variant.color} / {variant.brand} (ID: {variant.id})")


DEMO_PRODUCTS = [
    ("FR-AVI-01", "Frame Aviator"),
    ("FR-WAY-02", "Frame Wayfarer"),
    ("LN-SV-150", "Lens Single Vision 1.50"),
]
DEMO_LOCATIONS = [
    ("CEN", "Sucursal Centro"),
    ("NOR", "Sucursal Norte"),
]
DEMO_VARIANTS = [
    ("Black", "Ray-Ban"),
    ("Tortoise", "Oakley"),
]


@catalog_group.command('seed-demo')
@with_appcontext
def seed_demo_cli():
    """
    Seed a small demo catalog and one stock record per combination.

    Idempotent: existing catalog rows and live stock records are reused.
    """
    click.echo("START Seeding demo catalog...")
    stock = _services().stock_records

    products = []
    for sku, name in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=sku).first()
        products.append(product or create_product(db.session, sku=sku, name=name))

    locations = []
    for code, name in DEMO_LOCATIONS:
        location = db.session.query(Location).filter_by(code=code).first()
        locations.append(location or create_location(db.session, code=code, name=name))

    variants = []
    for color, brand in DEMO_VARIANTS:
        variant = db.session.query(Variant).filter_by(color=color, brand=brand).first()
        variants.append(variant or create_variant(db.session, color=color, brand=brand))

    created = 0
    skipped = 0
    for i, product in enumerate(products):
        for j, location in enumerate(locations):
            for k, variant in enumerate(variants):
                # Spread quantities so the alert view has something to show
                quantity = (i * 7 + j * 3 + k * 2) % 12
                req = CreateStockRecordRequest(
                    product_id=product.id,
                    location_id=location.id,
                    variant_id=variant.id,
                    quantity=quantity,
                    threshold=None,
                )
                try:
                    stock.create(req)
                    created += 1
                except LedgerError:
                    skipped += 1

    audit_sink.flush()
    click.echo(f"PASS Seeded {len(products)} products, {len(locations)} locations, {len(variants)} variants")
    click.echo(f"PASS Stock records created: {created}, already present: {skipped}")


@click.group('stock')
def stock_group():
    """Stock record inspection commands."""


@stock_group.command('list')
@click.option('--location-id', type=int, help='Filter by location ID')
@click.option('--status', type=click.Choice(STATUS_FILTERS), help='Filter by stock status')
@with_appcontext
def list_stock_cli(location_id, status):
    """List live stock records ordered by location then product."""
    records = _services().stock_records.list_records(StockFilter(location_id=location_id, status=status))

    if not records:
        click.echo("No stock records found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Location':<20} {'Product':<28} {'Variant':<24} {'On hand':>8} {'Threshold':>10}")
    click.echo("=" * 100)
    for r in records:
        variant = f"{r.variant.color} / {r.variant.brand}"
        click.echo(
            f"{r.id:<6} {r.location.name[:20]:<20} {r.product.name[:28]:<28} {variant[:24]:<24} "
            f"{r.quantity_on_hand:>8} {r.reorder_threshold:>10}"
        )
    click.echo("=" * 100 + "\n")


@stock_group.command('alerts')
@click.option('--location-id', type=int, help='Filter by location ID')
@with_appcontext
def stock_alerts_cli(location_id):
    """List records at or below their reorder threshold, lowest first."""
    result = list_stock_alerts(db.session, location_id=location_id)
    summary = result["summary"]

    if not result["items"]:
        click.echo("No stock alerts.")
        return

    for item in result["items"]:
        click.echo(
            f"[{item['status']:<12}] #{item['id']:<5} {item['location']['name']} / {item['product']['name']} "
            f"({item['variant']['color']} / {item['variant']['brand']}): "
            f"{item['quantity_on_hand']} on hand, threshold {item['reorder_threshold']}"
        )
    click.echo(
        f"\nTotal alerts: {summary['total']} (low: {summary['low']}, out of stock: {summary['out_of_stock']})"
    )


@stock_group.command('verify')
@click.option('--record-id', type=int, help='Verify a single stock record')
@with_appcontext
def verify_stock_cli(record_id):
    """
    Check quantity_on_hand against the ledger fold for every stock record
    (voided ones included).

    Exits with status 1 when any record drifts.
    """
    engine = _services().engine
    query = db.session.query(StockRecord)
    if record_id is not None:
        query = query.filter(StockRecord.id == record_id)
    records = query.order_by(StockRecord.id.asc()).all()

    if not records:
        click.echo("No stock records found.")
        return

    drifted = []
    for record in records:
        result = engine.verify_record(record)
        if result["drift"] != 0:
            drifted.append(result)
            click.echo(
                f"FAIL Record {result['stock_record_id']}: on hand {result['quantity_on_hand']}, "
                f"ledger {result['ledger_balance']} (drift {result['drift']:+d})"
            )

    if drifted:
        click.echo(f"FAIL {len(drifted)} of {len(records)} records drifted from their ledger")
        raise SystemExit(1)

    click.echo(f"PASS {len(records)} records match their ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(stock_group)
