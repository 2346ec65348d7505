# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (no-op for tables that already exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo tenant: merchant, two locations, admin/staff users, products, opening stock.
#
# Ledger inspection:
# - python -m flask ledger stock --product-id 1 [--location-id 2]
#   Show derived stock and the rows behind it.
# - python -m flask ledger debts --merchant-id 1
#   Show open supplier debt grouped by supplier.
# - python -m flask ledger verify [--merchant-id 1]
#   Scan every (product, location) pair and report negative derived stock.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    InventoryEntry,
    Location,
    Merchant,
    PaymentStatus,
    Product,
    StockMovement,
    User,
    UserRole,
)
from .services import debt_service
from .services.intake_service import add_stock
from .services.stock_service import current_stock, stock_breakdown
from .services.tenant_service import Caller


DEMO_MERCHANT_NAME = "Demo Merchant"


def _operator(merchant_id: int | None = None) -> Caller:
    """Platform-level caller used by CLI commands (no interactive login)."""
    owner = db.session.query(User).filter_by(role=UserRole.PLATFORM_OWNER).order_by(User.id).first()
    return Caller(
        user_id=owner.id if owner else 0,
        role=UserRole.PLATFORM_OWNER,
        acting_merchant_id=merchant_id,
    )


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Create a demo tenant with opening stock.

    Creates (if missing):
    - Platform owner: owner@stockledger.local
    - Merchant "Demo Merchant" with "Main Warehouse" (default) and "Shop Floor"
    - Users: admin@demo.local (MERCHANT_ADMIN), staff@demo.local (MERCHANT_STAFF)
    - Three products with opening stock at the main warehouse
    """
    click.echo("START Seeding demo data...")

    owner = db.session.query(User).filter_by(email="owner@stockledger.local").first()
    if not owner:
        owner = User(email="owner@stockledger.local", first_name="Platform", last_name="Owner",
                     role=UserRole.PLATFORM_OWNER)
        db.session.add(owner)
        db.session.commit()
        click.echo(f"PASS Created platform owner (ID: {owner.id})")

    merchant = db.session.query(Merchant).filter_by(name=DEMO_MERCHANT_NAME).first()
    if merchant:
        click.echo(f"PASS Using existing merchant: {merchant.name} (ID: {merchant.id}), nothing to do.")
        return

    merchant = Merchant(name=DEMO_MERCHANT_NAME, email="hello@demo.local")
    db.session.add(merchant)
    db.session.flush()

    main = Location(merchant_id=merchant.id, name="Main Warehouse", is_default=True)
    shop = Location(merchant_id=merchant.id, name="Shop Floor")
    admin = User(merchant_id=merchant.id, email="admin@demo.local", first_name="Demo",
                 last_name="Admin", role=UserRole.MERCHANT_ADMIN)
    staff = User(merchant_id=merchant.id, email="staff@demo.local", first_name="Demo",
                 last_name="Staff", role=UserRole.MERCHANT_STAFF)
    db.session.add_all([main, shop, admin, staff])

    threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5)
    products = [
        Product(merchant_id=merchant.id, sku="DEMO-001", name="Espresso Beans 1kg",
                price_cents=2400, cost_price_cents=1500, low_stock_threshold=threshold),
        Product(merchant_id=merchant.id, sku="DEMO-002", name="Paper Cups (50)",
                price_cents=650, cost_price_cents=300, low_stock_threshold=threshold),
        Product(merchant_id=merchant.id, sku="DEMO-003", name="Oat Milk 1L",
                price_cents=399, cost_price_cents=210, low_stock_threshold=threshold),
    ]
    db.session.add_all(products)
    db.session.commit()
    click.echo(f"PASS Created merchant {merchant.name} (ID: {merchant.id}) with 2 locations, 2 users")

    caller = Caller(user_id=admin.id, merchant_id=merchant.id, role=UserRole.MERCHANT_ADMIN)
    for i, product in enumerate(products):
        quantity = 20 * (i + 1)
        on_credit = i == 0
        add_stock(
            caller,
            product_id=product.id,
            quantity=quantity,
            location_id=main.id,
            supplier_name="Demo Supplier",
            total_cost_cents=quantity * product.cost_price_cents,
            payment_status=PaymentStatus.CREDIT if on_credit else PaymentStatus.PAID,
            notes="Opening stock",
        )
        click.echo(f"  + {quantity} x {product.name}{' (on credit)' if on_credit else ''}")

    click.echo("PASS Demo data seeded.")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection commands."""


@ledger_group.command('stock')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--location-id', type=int, default=None, help='Location ID (all locations if omitted)')
@with_appcontext
def show_stock(product_id, location_id):
    """Show derived stock for a product."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise click.ClickException(f"Product {product_id} not found")

    breakdown = stock_breakdown(product_id, location_id)
    where = f"location {location_id}" if location_id is not None else "all locations"

    click.echo(f"{product.name} (ID: {product.id}) at {where}")
    click.echo(f"  Inventory entries: {breakdown.entry_count:>6}  total {breakdown.entry_total:>8}")
    click.echo(f"  Movements:         {breakdown.movement_count:>6}  total {breakdown.movement_total:>8}")
    click.echo(f"  Current stock:     {breakdown.stock:>15}")
    click.echo(f"  Low stock threshold: {product.low_stock_threshold}")


@ledger_group.command('debts')
@click.option('--merchant-id', type=int, required=True, help='Merchant ID')
@with_appcontext
def show_debts(merchant_id):
    """Show open supplier debt for a merchant."""
    summary = debt_service.debt_summary(_operator(merchant_id))

    click.echo(
        f"Total debt: {_money(summary['total_debt_cents'])} "
        f"(credit {_money(summary['total_credit_cents'])}, "
        f"partial {_money(summary['total_partial_cents'])}), "
        f"{summary['unpaid_count']} unpaid entr{'y' if summary['unpaid_count'] == 1 else 'ies'}"
    )

    if not summary["supplier_breakdown"]:
        click.echo("No open supplier debt.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'Supplier':<35} {'Entries':>8} {'Outstanding':>15}")
    click.echo("=" * 60)
    for supplier in summary["supplier_breakdown"]:
        click.echo(
            f"{supplier['name']:<35} {len(supplier['items']):>8} "
            f"{_money(supplier['total_debt_cents']):>15}"
        )


@ledger_group.command('verify')
@click.option('--merchant-id', type=int, default=None, help='Only check this merchant')
@with_appcontext
def verify_ledger(merchant_id):
    """Report every (product, location) pair whose derived stock is negative."""
    entry_pairs = db.session.query(InventoryEntry.product_id, InventoryEntry.location_id).join(
        Product, InventoryEntry.product_id == Product.id
    )
    movement_pairs = db.session.query(StockMovement.product_id, StockMovement.location_id).join(
        Product, StockMovement.product_id == Product.id
    )
    if merchant_id is not None:
        entry_pairs = entry_pairs.filter(Product.merchant_id == merchant_id)
        movement_pairs = movement_pairs.filter(Product.merchant_id == merchant_id)

    pairs = sorted(
        {tuple(row) for row in entry_pairs.distinct().all()}
        | {tuple(row) for row in movement_pairs.distinct().all()}
    )

    problems = []
    for product_id, location_id in pairs:
        if current_stock(product_id, location_id) < 0:
            problems.append(stock_breakdown(product_id, location_id))

    click.echo(f"Checked {len(pairs)} product/location pair(s).")
    if not problems:
        click.echo("PASS No negative stock found.")
        return

    for b in problems:
        click.echo(
            f"FAIL product {b.product_id} at location {b.location_id}: stock {b.stock} "
            f"(entries {b.entry_count}/{b.entry_total}, movements {b.movement_count}/{b.movement_total})"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
