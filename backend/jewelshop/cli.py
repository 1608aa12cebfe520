# Overview: Flask CLI command groups for bootstrap, tenant management, and maintenance.

# backend/jewelshop/cli.py
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
#
# Shop management (MULTI-TENANT):
# - python -m flask shops list [--all]
#   List shops (use --all to include soft-deleted shops).
# - python -m flask shops create --name "Sona Jewellers" --gstin 27ABCDE1234F1Z5
#   Create a new shop (tenant).
#
# User inspection/bootstrap:
# - python -m flask users list [--shop-id 1]
#   List users with role and active status.
# - python -m flask users create --shop-id 1 --username owner --name "Owner" --password "Password123!" --role OWNER
#   Create a user (prompts if options are omitted). Omit --shop-id for SUPER_ADMIN.
#
# Scheduled jobs:
# - python -m flask emi mark-overdue [--as-of 2026-01-31]
#   Mark past-due EMI installments and plans OVERDUE across all shops.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .models.auth import ROLES
from .services import auth_service, emi_service, shop_service
from .time_utils import parse_iso_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
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


@click.group('shops')
def shops_group():
    """Shop (tenant) management commands."""


@shops_group.command('list')
@click.option('--all', 'include_deleted', is_flag=True, help='Include soft-deleted shops')
@with_appcontext
def list_shops(include_deleted):
    """List all shops."""
    shops = shop_service.list_shops(None, include_deleted=include_deleted)

    if not shops:
        click.echo("No shops found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'GSTIN':<17} {'Active':<8} {'Paused':<8} {'Users'}")
    click.echo("="*80)

    for shop in shops:
        user_count = db.session.query(User).filter_by(shop_id=shop.id).count()
        active_str = "Yes" if shop.is_active and shop.deleted_at is None else "No"
        paused_str = "Yes" if shop.is_paused else "No"

        click.echo(f"{shop.id:<5} {shop.name:<30} {shop.gstin or '-':<17} {active_str:<8} {paused_str:<8} {user_count}")

    click.echo("="*80 + "\n")


@shops_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--gstin', default=None, help='GSTIN (unique)')
@click.option('--city', default=None, help='City')
@with_appcontext
def create_shop_cli(name, gstin, city):
    """Create a new shop (tenant)."""
    payload = {"name": name}
    if gstin:
        payload["gstin"] = gstin
    if city:
        payload["city"] = city
    try:
        shop = shop_service.create_shop(None, payload)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--shop-id', type=int, default=None, help='Shop ID (omit for SUPER_ADMIN)')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(shop_id, username, name, password, role):
    """Create a user."""
    try:
        user = auth_service.create_user(
            None,
            username=username,
            password=password,
            name=name,
            role=role,
            shop_id=shop_id,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, Shop: {user.shop_id or '-'}, Role: {user.role})")


@users_group.command('list')
@click.option('--shop-id', type=int, help='Filter by shop ID')
@with_appcontext
def list_users(shop_id):
    """List all users with their roles."""
    query = db.session.query(User)

    if shop_id:
        query = query.filter_by(shop_id=shop_id)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Shop':<6} {'Username':<20} {'Name':<25} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        shop_str = str(user.shop_id) if user.shop_id else "-"
        click.echo(f"{user.id:<5} {shop_str:<6} {user.username:<20} {user.name:<25} {active_str:<8} {user.role}")

    click.echo("="*80 + "\n")


@click.group('emi')
def emi_group():
    """EMI maintenance commands."""


@emi_group.command('mark-overdue')
@click.option('--as-of', 'as_of', default=None, help='Cutoff date YYYY-MM-DD (default: today)')
@with_appcontext
def mark_overdue(as_of):
    """Mark past-due installments and plans OVERDUE in every shop."""
    try:
        cutoff = parse_iso_date(as_of)
    except ValueError:
        click.echo("FAIL --as-of must be YYYY-MM-DD")
        return

    result = emi_service.mark_overdue_installments(None, as_of=cutoff)
    click.echo(
        f"PASS Marked {result['installments_marked']} installments and "
        f"{result['payments_marked']} plans overdue."
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shops_group)  # Multi-tenant shop management
    app.cli.add_command(users_group)
    app.cli.add_command(emi_group)
