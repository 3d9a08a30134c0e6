# Overview: Flask CLI command groups for bootstrap and stock inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant setup:
# - python -m flask businesses create --name "Acme Retail" --code "ACME"
# - python -m flask businesses list
# - python -m flask branches create --business-id 1 --name "Main Branch" --code "MAIN"
# - python -m flask products create --business-id 1 --name "Sugar 1kg" --cost 1.20 --price 1.50 \
#       [--sku SUG1] [--category Grocery] [--branch-id 1 --quantity 40 --user-id 1]
#   Create a product; with --branch-id/--quantity also record its opening balance.
#
# Stock inspection:
# - python -m flask stock levels --business-id 1 [--branch-id 1]
# - python -m flask stock reconcile --business-id 1
#   Compare every stored quantity with its movement sum. Exits 1 on drift.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Branch, Business, Product
from .services import ledger_service, query_service
from .validation import to_cents


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the stock movement history!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


# =============================================================================
# TENANT SETUP COMMANDS
# =============================================================================

@click.group('businesses')
def businesses_group():
    """Business (tenant) management commands."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    """List all businesses."""
    businesses = db.session.query(Business).order_by(Business.id).all()

    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Branches'}")
    click.echo("="*70)

    for business in businesses:
        branch_count = db.session.query(Branch).filter_by(business_id=business.id).count()
        active_str = "Yes" if business.is_active else "No"
        click.echo(
            f"{business.id:<5} {business.name:<30} {business.code or '-':<15} {active_str:<8} {branch_count}"
        )

    click.echo("="*70 + "\n")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@click.option('--code', help='Short code (unique)')
@with_appcontext
def create_business_cli(name, code):
    """Create a new business (tenant)."""
    if code:
        existing = db.session.query(Business).filter_by(code=code).first()
        if existing:
            click.echo(f"FAIL Business with code '{code}' already exists")
            return

    business = Business(name=name, code=code, is_active=True)
    db.session.add(business)
    db.session.commit()

    click.echo(f"PASS Created business: {business.name} (ID: {business.id})")


@click.group('branches')
def branches_group():
    """Branch management commands."""


@branches_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--name', required=True, help='Branch name')
@click.option('--code', help='Branch code (unique within business)')
@with_appcontext
def create_branch_cli(business_id, name, code):
    """Add a branch to a business."""
    business = db.session.get(Business, business_id)
    if not business:
        click.echo(f"FAIL Business ID {business_id} not found")
        return

    existing = db.session.query(Branch).filter_by(business_id=business_id, name=name).first()
    if existing:
        click.echo(f"FAIL Branch '{name}' already exists in this business")
        return

    branch = Branch(business_id=business_id, name=name, code=code)
    db.session.add(branch)
    db.session.commit()

    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id}) in '{business.name}'")


@click.group('products')
def products_group():
    """Product management commands."""


@products_group.command('create')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--name', required=True, help='Product name')
@click.option('--cost', required=True, help='Cost price, e.g. 1.20')
@click.option('--price', required=True, help='Selling price, e.g. 1.50')
@click.option('--sku', help='SKU code')
@click.option('--category', help='Category name')
@click.option('--branch-id', type=int, help='Branch for the opening balance')
@click.option('--quantity', type=int, help='Opening quantity at --branch-id')
@click.option('--user-id', type=int, default=1, show_default=True, help='Actor recorded on the opening balance')
@with_appcontext
def create_product_cli(business_id, name, cost, price, sku, category, branch_id, quantity, user_id):
    """Create a product, optionally with an opening balance at one branch."""
    if (branch_id is None) != (quantity is None):
        click.echo("FAIL --branch-id and --quantity must be given together")
        return

    try:
        cost_cents = to_cents(cost, "cost")
        price_cents = to_cents(price, "price")
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return

    if not db.session.get(Business, business_id):
        click.echo(f"FAIL Business ID {business_id} not found")
        return

    product = Product(
        business_id=business_id,
        name=name,
        sku=sku,
        category=category,
        cost_price_cents=cost_cents,
        sell_price_cents=price_cents,
    )
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product: {product.name} (ID: {product.id})")

    if quantity is None or quantity == 0:
        return

    try:
        new_qty = ledger_service.record_opening_balance(
            business_id=business_id,
            branch_id=branch_id,
            product_id=product.id,
            user_id=user_id,
            quantity=quantity,
        )
    except LedgerError as e:
        click.echo(f"FAIL Opening balance not recorded: {e.message}")
        return
    click.echo(f"PASS Opening balance at branch {branch_id}: {new_qty}")


# =============================================================================
# STOCK INSPECTION COMMANDS
# =============================================================================

@click.group('stock')
def stock_group():
    """Stock inspection and consistency commands."""


@stock_group.command('levels')
@click.option('--business-id', type=int, required=True, help='Business ID')
@click.option('--branch-id', type=int, help='Limit to one branch')
@with_appcontext
def stock_levels_cli(business_id, branch_id):
    """List current stock quantities."""
    levels = query_service.list_stock_levels(business_id, branch_id=branch_id)
    if not levels:
        click.echo("No stock recorded.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'Branch':<8} {'Product':<8} {'Name':<40} {'Qty'}")
    click.echo("="*70)
    for level in levels:
        click.echo(
            f"{level['branch_id']:<8} {level['product_id']:<8} {level['product_name']:<40} {level['quantity']}"
        )
    click.echo("="*70 + "\n")


@stock_group.command('reconcile')
@click.option('--business-id', type=int, required=True, help='Business ID')
@with_appcontext
def stock_reconcile_cli(business_id):
    """Check quantity == SUM(movements) for every key."""
    drift = ledger_service.reconcile_stock_levels(business_id)
    if not drift:
        click.echo("PASS Stock levels match the movement log.")
        return

    for row in drift:
        click.echo(
            f"FAIL branch={row['branch_id']} product={row['product_id']} "
            f"quantity={row['quantity']} movements={row['movement_total']} "
            f"difference={row['difference']}"
        )
    raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
