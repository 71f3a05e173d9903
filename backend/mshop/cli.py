# Overview: Flask CLI command groups for bootstrap and consistency checks.

# backend/mshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables and the ledger book head rows (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection:
# - python -m flask ledger balance [--book main]
#   Print the current balance of a ledger book.
# - python -m flask ledger verify [--book main]
#   Recompute the running balance chain; exits 1 when it is broken.
#
# Stock inspection:
# - python -m flask stock verify
#   Check stock = purchased - sold + returned for every non-serialized
#   product and that no serialized product carries an aggregate count;
#   exits 1 on drift.

import sys

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .models import Product, Purchase, ReturnLine, SaleLine
from .models.ledger import BOOKS, BOOK_MAIN
from .services.ledger_service import ensure_ledger_heads, latest_balance, verify_chain


def _format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables and ledger head rows. Safe to run repeatedly."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    ensure_ledger_heads()
    db.session.commit()
    click.echo(f"PASS Ledger books ready: {', '.join(BOOKS)}")


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
    ensure_ledger_heads()
    db.session.commit()
    click.echo("PASS Database reset complete")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Treasury ledger inspection."""


@ledger_group.command('balance')
@click.option('--book', type=click.Choice(BOOKS), default=BOOK_MAIN, show_default=True)
@with_appcontext
def ledger_balance(book):
    """Print the balance after the newest entry of a book."""
    click.echo(f"{book}: {_format_cents(latest_balance(book))}")


@ledger_group.command('verify')
@click.option('--book', type=click.Choice(BOOKS), default=None, help='Only this book (default: all)')
@with_appcontext
def ledger_verify(book):
    """Recompute every balance_after from zero and report breaks in the chain."""
    books = [book] if book else list(BOOKS)
    failed = False
    for name in books:
        problems = verify_chain(name)
        if problems:
            failed = True
            click.echo(f"FAIL {name}: {len(problems)} problem(s)")
            for problem in problems:
                click.echo(f"  - {problem}")
        else:
            click.echo(f"PASS {name}: chain intact")
    if failed:
        sys.exit(1)


# =============================================================================
# STOCK
# =============================================================================

@click.group('stock')
def stock_group():
    """Inventory consistency checks."""


def _sum_by_product(column, quantity_column, *filters) -> dict[int, int]:
    q = db.session.query(column, func.coalesce(func.sum(quantity_column), 0))
    for f in filters:
        q = q.filter(f)
    return {pid: int(total) for pid, total in q.group_by(column).all()}


@stock_group.command('verify')
@with_appcontext
def stock_verify():
    """Compare stored stock with purchased - sold + returned."""
    purchased = _sum_by_product(Purchase.product_id, Purchase.quantity)
    sold = _sum_by_product(SaleLine.product_id, SaleLine.quantity, SaleLine.serial_number.is_(None))
    returned = _sum_by_product(ReturnLine.product_id, ReturnLine.quantity, ReturnLine.serial_number.is_(None))

    drift = []
    for product in Product.query.order_by(Product.id.asc()).all():
        if product.is_serialized:
            if product.stock != 0:
                drift.append((product, 0, product.stock))
            continue
        expected = purchased.get(product.id, 0) - sold.get(product.id, 0) + returned.get(product.id, 0)
        if expected != product.stock:
            drift.append((product, expected, product.stock))

    if not drift:
        click.echo("PASS stock matches purchases, sales and returns")
        return

    click.echo(f"FAIL {len(drift)} product(s) drifted:")
    for product, expected, actual in drift:
        click.echo(f"  - #{product.id} {product.name}: expected {expected}, stored {actual}")
    sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(stock_group)
