# Overview: Flask CLI command groups for bootstrap, ledger repair, and maintenance.

# backend/ordertrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (no data is touched).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection/repair:
# - python -m flask ledger audit-balances
#   Report customers whose cached balance differs from the ledger.
# - python -m flask ledger recalc-balances [--customer-id 1]
#   Recompute cached balances from the ledger (all customers by default).
#
# Maintenance:
# - python -m flask maintenance cleanup-orders --days-old 365
#   Delete completed orders (with deliveries and payments) older than the window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .money import to_json_amount
from .services import balance_service
from .services import maintenance_service


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


@click.group('ledger')
def ledger_group():
    """Customer balance inspection and repair."""


@ledger_group.command('audit-balances')
@with_appcontext
def audit_balances_cli():
    """List customers whose cached balance has drifted from the ledger."""
    mismatches = balance_service.audit_balances()
    if not mismatches:
        click.echo("PASS All customer balances match the ledger.")
        return

    click.echo(f"WARN {len(mismatches)} customer balance(s) drifted:")
    for row in mismatches:
        click.echo(
            f"  customer {row['customer_id']}: cached {to_json_amount(row['cached'])}, "
            f"ledger {to_json_amount(row['expected'])}"
        )
    click.echo("Run 'python -m flask ledger recalc-balances' to repair.")


@ledger_group.command('recalc-balances')
@click.option('--customer-id', type=int, default=None, help='Only this customer')
@with_appcontext
def recalc_balances_cli(customer_id):
    """Recompute cached balances from the ledger."""
    if customer_id is not None:
        balance = balance_service.recalc_balance(customer_id)
        click.echo(f"PASS Customer {customer_id} balance: {to_json_amount(balance)}")
        return

    count = balance_service.recalc_all_balances()
    current_app.logger.info("Recalculated balances for %s customers", count)
    click.echo(f"PASS Recalculated balances for {count} customers.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-orders')
@click.option('--days-old', type=int, default=None, help='Retention window in days (default: ORDER_RETENTION_DAYS)')
@with_appcontext
def cleanup_orders_cli(days_old):
    """
    Delete completed orders older than the retention window.

    Default retention: ORDER_RETENTION_DAYS (365 days).
    """
    if days_old is None:
        days_old = current_app.config["ORDER_RETENTION_DAYS"]
    deleted = maintenance_service.cleanup_old_orders(days_old=days_old)
    click.echo(f"Deleted {deleted} completed orders older than {days_old} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(maintenance_group)
