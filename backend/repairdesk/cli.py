# Overview: Flask CLI command groups for bootstrap, store settings, and maintenance.

# backend/repairdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Store management:
# - python -m flask stores list
# - python -m flask stores create --name "Main Street" --code "MAIN"
# - python -m flask stores set-warranty-period --store-id 1 --days 90
#   Default warranty length for tickets completed in that store.
#
# Maintenance:
# - python -m flask warranties expire [--store-id 1]
#   Mark overdue active warranties as expired (reads do this lazily too).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import store_service, warranty_service
from .services.store_service import StoreError
from .validation import NotFoundError, ValidationError


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

    click.echo("PASS Database reset complete. Run 'python -m flask stores create' to add a store.")


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores with their default warranty period."""
    stores = store_service.list_stores()
    if not stores:
        click.echo("No stores found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<12} {'Warranty days':<14}")
    click.echo("-" * 64)
    for s in stores:
        days = store_service.get_default_warranty_period_days(s.id)
        click.echo(f"{s.id:<5} {s.name:<30} {s.code or '-':<12} {days:<14}")


@stores_group.command('create')
@click.option('--name', prompt=True, help='Store name')
@click.option('--code', default=None, help='Short store code')
@with_appcontext
def create_store(name, code):
    """Create a new store."""
    try:
        store = store_service.create_store(name, code)
    except StoreError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")


@stores_group.command('set-warranty-period')
@click.option('--store-id', required=True, type=int, help='Store ID')
@click.option('--days', required=True, type=int, help='Default warranty length in days')
@with_appcontext
def set_warranty_period(store_id, days):
    """Set the default warranty period for tickets completed in a store."""
    try:
        store_service.set_default_warranty_period_days(store_id, days)
    except (NotFoundError, ValidationError, StoreError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Store {store_id} default warranty period: {days} days")


@click.group('warranties')
def warranties_group():
    """Warranty maintenance commands."""


@warranties_group.command('expire')
@click.option('--store-id', default=None, type=int, help='Limit to one store')
@with_appcontext
def expire_warranties(store_id):
    """Mark active warranties past their expiry date as expired."""
    updated = warranty_service.expire_overdue_warranties(store_id=store_id)
    click.echo(f"PASS Expired {updated} warranties.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(warranties_group)
