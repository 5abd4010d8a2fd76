# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/shoppos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Shop bootstrap:
# - python -m flask shop init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask shop create --name "Corner Store" --timezone Asia/Dhaka --invoices
#   Create a shop; --invoices turns on sequential invoice numbers.
#
# Ledger inspection:
# - python -m flask ledger audit [--shop-id 1]
#   Compare every customer's total_due with the signed sum of their ledger.
#   Exits with status 1 when any customer disagrees.

import click
from flask.cli import with_appcontext

from .errors import ShopPosError
from .extensions import db
from .services.customer_ledger_service import audit_customer_balances
from .services.shop_service import create_shop


@click.group('shop')
def shop_group():
    """Shop bootstrap commands."""


@shop_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@shop_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--owner', 'owner_user_id', default=None, help='Owner user id')
@click.option('--timezone', default=None, help='IANA timezone for business dates')
@click.option('--invoices/--no-invoices', default=False, help='Issue sequential invoice numbers')
@click.option('--invoice-prefix', default=None, help='Invoice number prefix (default INV)')
@click.option('--return-prefix', default=None, help='Return number prefix (default RET)')
@with_appcontext
def create_shop_cli(name, owner_user_id, timezone, invoices, invoice_prefix, return_prefix):
    """Create a new shop."""
    try:
        shop = create_shop(
            name=name,
            owner_user_id=owner_user_id,
            timezone=timezone,
            sales_invoice_enabled=invoices,
            sales_invoice_prefix=invoice_prefix,
            sale_return_prefix=return_prefix,
        )
    except ShopPosError as e:
        raise click.ClickException(e.message)

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")


@click.group('ledger')
def ledger_group():
    """Customer ledger inspection."""


@ledger_group.command('audit')
@click.option('--shop-id', type=int, default=None, help='Limit to one shop')
@with_appcontext
def audit_ledger(shop_id):
    """Report customers whose total_due disagrees with their ledger."""
    mismatches = audit_customer_balances(shop_id)
    if not mismatches:
        click.echo("PASS All customer balances match their ledgers")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'Customer':<10} {'Shop':<6} {'Name':<30} {'total_due':>12} {'ledger':>12}")
    click.echo("=" * 80)
    for row in mismatches:
        click.echo(
            f"{row['customer_id']:<10} {row['shop_id']:<6} {row['name'][:30]:<30} "
            f"{row['total_due']:>12} {row['ledger_balance']:>12}"
        )
    click.echo("=" * 80 + "\n")
    click.echo(f"FAIL {len(mismatches)} customer balance(s) disagree with the ledger")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(shop_group)
    app.cli.add_command(ledger_group)
