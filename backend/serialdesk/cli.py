# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/serialdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@serialdesk.local] [--admin-password "Password123!"]
#   Idempotent bootstrap: creates tables and the default admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --name "Jane" --email jane@example.com --password "Password123!" --role retailer
# - python -m flask users list
#
# Inventory:
# - python -m flask inventory resync-stock
#   Recount stock/offline_stock for every product from its units.
#
# Warranties:
# - python -m flask warranties validate SN-0001 [--as-of 2025-01-01]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import inventory_service, warranty_service
from .services.auth_service import create_user, PasswordValidationError
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', help='Admin display name')
@click.option('--admin-email', default='admin@serialdesk.local', help='Admin email')
@click.option('--admin-password', default='Password123!', help='Admin password')
@with_appcontext
def init_system(admin_name, admin_email, admin_password):
    """
    Create all tables and the default admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing serialdesk...")

    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(email=admin_email.lower()).first()
    if existing:
        click.echo(f"PASS Admin already exists: {existing.email} (ID: {existing.id})")
        return

    try:
        user = create_user(name=admin_name, email=admin_email, password=admin_password, role="admin")
    except ValidationError as e:
        click.echo(f"FAIL Could not create admin: {str(e)}")
        return

    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. Units, warranties and orders are lost."""
    if not yes:
        click.confirm(f"WARN Wipe {db.engine.url.render_as_string(hide_password=True)}?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated; run 'flask system init' for an admin account")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'retailer', 'user']), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name=name, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.email} with role '{role}' (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    users = db.session.query(User).order_by(User.role, User.email).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        flag = "" if user.is_active else "  (inactive)"
        click.echo(f"{user.id:>4}  {user.role:<9} {user.email} [{user.name}]{flag}")
    click.echo(f"{len(users)} users")


@click.group('inventory')
def inventory_group():
    """Stock counter maintenance."""


@inventory_group.command('resync-stock')
@with_appcontext
def resync_stock():
    """Recount stock/offline_stock for every product from its units."""
    changed = inventory_service.resync_all()
    if not changed:
        click.echo("PASS All product counters already in sync")
        return
    for entry in changed:
        before, after = entry["before"], entry["after"]
        click.echo(
            f"FIXED product {entry['product_id']}: "
            f"stock {before['total_stock']} -> {after['total_stock']}, "
            f"offline {before['offline_stock']} -> {after['offline_stock']}"
        )
    click.echo(f"PASS Resynced {len(changed)} products")


@click.group('warranties')
def warranties_group():
    """Warranty inspection commands."""


@warranties_group.command('validate')
@click.argument('serial_number')
@click.option('--as-of', default=None, help='ISO date to evaluate against (default: today)')
@with_appcontext
def validate_warranty(serial_number, as_of):
    """Print the warranty standing of a serial number."""
    try:
        result = warranty_service.validate(serial_number, as_of=as_of)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--as-of")

    click.echo(f"{serial_number}: {result.status} ({result.message})")
    if result.warranty is not None and result.warranty.warranty_end_date is not None:
        click.echo(f"  valid until {result.warranty.warranty_end_date.isoformat()}, "
                   f"{result.days_remaining} days remaining")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(warranties_group)
