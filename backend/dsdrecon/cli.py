# Overview: Flask CLI command groups for bootstrap, catalog import and ledger inspection.

# backend/dsdrecon/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; production uses `flask db upgrade`).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog import --source awg awg_catalog.csv
#   Bulk import wholesale catalog rows (upc, item_number, description, ...).
# - python -m flask catalog import --source internal products.csv
#   Bulk import internal products (upc, item_code, description, vendor_id, ...).
#
# Price ledger:
# - python -m flask ledger show 42 [--limit 20]
#   Print effective-dated cost history for a product.

import csv

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import catalog_service, price_ledger
from .services.catalog_service import CATALOG_SOURCES
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('catalog')
def catalog_group():
    """Catalog import commands."""


@catalog_group.command('import')
@click.option('--source', type=click.Choice(sorted(CATALOG_SOURCES)), required=True, help='Catalog source')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@with_appcontext
def import_catalog_cli(source, csv_file):
    """
    Import catalog rows from a CSV file with a header row.

    Example:
        flask catalog import --source awg awg_catalog.csv
    """
    rows = [dict(row) for row in csv.DictReader(csv_file)]
    click.echo(f"START Importing {len(rows)} {source} rows...")

    try:
        result = catalog_service.import_catalog(source, rows)
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Imported: {result.imported}  Skipped: {result.skipped}")
    for error in result.errors:
        click.echo(f"  WARN {error}")


@click.group('ledger')
def ledger_group():
    """Price ledger inspection commands."""


@ledger_group.command('show')
@click.argument('product_id', type=int)
@click.option('--limit', default=20, show_default=True, help='Maximum entries to show')
@with_appcontext
def show_ledger(product_id, limit):
    """
    Print the price history for a product, newest first.

    Example:
        flask ledger show 42
    """
    product = db.session.get(Product, product_id)
    if not product:
        raise click.ClickException(f"Product {product_id} not found")

    entries = price_ledger.price_history(product_id, limit=limit)

    click.echo(f"\n{product.description} (UPC: {product.upc or '-'}, ID: {product.id})")
    if not entries:
        click.echo("No price history.")
        return

    click.echo("=" * 70)
    click.echo(f"{'Effective':<12} {'Unit Cost':>12} {'Previous':>12} {'Change %':>10} {'Invoice':>10}")
    click.echo("=" * 70)

    for entry in entries:
        previous = f"{entry.previous_cost:.4f}" if entry.previous_cost is not None else "-"
        change = f"{entry.change_pct:.2f}" if entry.change_pct is not None else "-"
        click.echo(
            f"{entry.effective_date.isoformat():<12} {entry.unit_cost:>12.4f} {previous:>12} "
            f"{change:>10} {entry.source_invoice_id or '-':>10}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(ledger_group)
