# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/zes_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default owner/shopkeeper accounts.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load demo products and customers into empty tables.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --username counter2 --password "Password123!" --role shopkeeper
#   Create a user (prompts if options are omitted).
#
# Ledger audit:
# - python -m flask ledger verify
#   Recompute invoice, payment, customer and stock invariants; exits 1 on drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Product, User
from .permissions import VALID_ROLES
from .services import auth_service
from .services.auth_service import PasswordValidationError
from .services.ledger_service import verify_ledger
from .validation import ConflictError, ValidationError

DEFAULT_PASSWORD = "Password123!"

SEED_PRODUCTS = [
    # name, category, unit, price, cost, stock, watts (amounts in paisa)
    ("LED Bulb 12W", "Lighting", "piece", 35000, 26000, 120, "12W"),
    ("LED Bulb 18W", "Lighting", "piece", 52000, 39000, 80, "18W"),
    ("LED Tube Light 20W", "Lighting", "piece", 95000, 72000, 60, "20W"),
    ("Copper Wire 1.5mm", "Wiring", "meter", 12000, 9000, 1000, None),
    ("Copper Wire 2.5mm Pack of 90m", "Wiring", "pack", 950000, 780000, 15, None),
    ("Switch 2-Gang", "Switches", "piece", 28000, 19000, 200, None),
]

SEED_CUSTOMERS = [
    # name, phone, address
    ("Ahmad Ali", "03001234567", "Lahore"),
    ("Sara Khan", "03017654321", "Faisalabad"),
    ("Hassan Raza", "03005551234", "Multan"),
]


# =============================================================================
# SYSTEM COMMANDS
# =============================================================================

@click.group('system')
def system_group():
    """System initialization and maintenance commands."""


@system_group.command('init')
@click.option('--owner-password', default=DEFAULT_PASSWORD, help='Password for the owner account')
@click.option('--shopkeeper-password', default=DEFAULT_PASSWORD, help='Password for the shopkeeper account')
@with_appcontext
def init_system(owner_password, shopkeeper_password):
    """
    Initialize the shop: create tables and default users.

    Safe to run multiple times; existing users are left alone.
    """
    click.echo("START Initializing ZES POS...")
    db.create_all()
    click.echo("PASS Tables ready")

    click.echo("\nUSERS Creating default users...")
    try:
        created = auth_service.create_default_users(owner_password, shopkeeper_password)
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")

    for user in created:
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
    if not created:
        click.echo("WARN  Default users already exist, skipping...")

    click.echo("\n" + "=" * 60)
    click.echo("DONE ZES POS Initialized")
    click.echo("=" * 60)
    if created and owner_password == DEFAULT_PASSWORD:
        click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
        click.echo(f"   owner      / {DEFAULT_PASSWORD}")
        click.echo(f"   shopkeeper / {DEFAULT_PASSWORD}")


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

    click.echo("PASS Database reset. Run: python -m flask system init")


@system_group.command('seed')
@with_appcontext
def seed():
    """Load demo products and customers. Tables that already hold rows are skipped."""
    if db.session.query(Product).count() == 0:
        for name, category, unit, price, cost, stock, watts in SEED_PRODUCTS:
            db.session.add(Product(
                name=name,
                category=category,
                unit=unit,
                price_per_unit_cents=price,
                cost_per_unit_cents=cost,
                stock=stock,
                watts=watts,
            ))
        db.session.commit()
        click.echo(f"PASS Seeded {len(SEED_PRODUCTS)} products")
    else:
        click.echo("WARN  Products already present, skipping...")

    if db.session.query(Customer).count() == 0:
        for name, phone, address in SEED_CUSTOMERS:
            db.session.add(Customer(name=name, phone=phone, address=address, total_due_cents=0))
        db.session.commit()
        click.echo(f"PASS Seeded {len(SEED_CUSTOMERS)} customers")
    else:
        click.echo("WARN  Customers already present, skipping...")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.created_at.asc()).all()
    if not users:
        click.echo("No users found. Run: python -m flask system init")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'Username':<20} {'Name':<25} {'Role':<12} {'Active'}")
    click.echo("=" * 70)
    for user in users:
        click.echo(f"{user.username:<20} {user.name:<25} {user.role:<12} {'yes' if user.is_active else 'no'}")
    click.echo("=" * 70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), default='shopkeeper', help='Role')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, password, role, name):
    """Create a new user."""
    try:
        user = auth_service.create_user(username, password, name=name, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.username} with role '{user.role}'")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger audit commands."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger_cli():
    """Recompute every ledger invariant and report drift."""
    issues = verify_ledger()
    if not issues:
        click.echo("PASS Ledger is consistent")
        return

    for issue in issues:
        click.echo(
            f"FAIL {issue['check']}: {issue['entity']} {issue['id']} "
            f"expected={issue['expected']} actual={issue['actual']}"
        )
    raise click.ClickException(f"{len(issues)} ledger issue(s) found")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
