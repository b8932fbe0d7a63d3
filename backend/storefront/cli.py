# Overview: Flask CLI command groups for bootstrap, inspection, and account maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "storefront:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create the documents table if it does not exist.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/maintenance:
# - python -m flask users list [--category franchise]
#   List users with category, lineage and active status.
# - python -m flask users create --email a@x.com --first-name Ada --last-name Lovelace
#   Create a customer account (ids are allocated from counters/customerCounter).
# - python -m flask users upgrade cu000001
#   Move a customer to a franchise id.
# - python -m flask users revert fr000001
#   Move a franchise back to its original customer id.
#
# Counters and orders:
# - python -m flask counters show
#   Print every counter document and its current value.
# - python -m flask orders lookup --user-id cu000001 --code cu90210uswiga3none
#   Find orders by tracking code (both values required).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import identity_service, order_service
from .services.document_store import document_store, PersistenceError
from .services.identity_service import IdentityError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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


@click.group('users')
def users_group():
    """User inspection and category migration."""


@users_group.command('list')
@click.option('--category', type=click.Choice(['customer', 'franchise']), help='Filter by category')
@with_appcontext
def list_users_cli(category):
    """List users with lineage and active status."""
    users = identity_service.list_users(category)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<10} {'Category':<10} {'Email':<35} {'Active':<8} {'Lineage'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.get("isActive") else "No"
        lineage = user.get("previousId") or user.get("previousFranchiseId") or "-"
        click.echo(
            f"{user['id']:<10} {user.get('category') or '?':<10} {user.get('email', ''):<35} "
            f"{active_str:<8} {lineage}"
        )

    click.echo("="*100 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Account email (unique)')
@click.option('--first-name', default='', help='First name')
@click.option('--last-name', default='', help='Last name')
@click.option('--phone', default='', help='Primary phone')
@with_appcontext
def create_user_cli(email, first_name, last_name, phone):
    """Create a customer account."""
    try:
        user_id = identity_service.create_user({
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "primaryPhone": phone,
        })
        click.echo(f"PASS Created user {user_id} ({email})")
    except (IdentityError, ValueError, PersistenceError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('upgrade')
@click.argument('user_id')
@with_appcontext
def upgrade_user_cli(user_id):
    """Upgrade a customer to franchise."""
    try:
        franchise_id = identity_service.upgrade_to_franchise(user_id)
        click.echo(f"PASS {user_id} is now {franchise_id}")
    except (IdentityError, PersistenceError) as e:
        click.echo(f"FAIL Failed to upgrade {user_id}: {str(e)}")


@users_group.command('revert')
@click.argument('user_id')
@with_appcontext
def revert_user_cli(user_id):
    """Revert a franchise to its original customer id."""
    try:
        customer_id = identity_service.revert_to_customer(user_id)
        click.echo(f"PASS {user_id} is now {customer_id}")
    except (IdentityError, PersistenceError) as e:
        click.echo(f"FAIL Failed to revert {user_id}: {str(e)}")


@click.group('counters')
def counters_group():
    """Counter inspection."""


@counters_group.command('show')
@with_appcontext
def show_counters():
    """Print all counter documents."""
    counters = document_store.list_documents(identity_service.COUNTERS_COLLECTION)
    if not counters:
        click.echo("No counters allocated yet.")
        return

    for counter in counters:
        click.echo(f"{counter.id:<40} {counter.get('currentCount', 0)}")


@click.group('orders')
def orders_group():
    """Order inspection."""


@orders_group.command('lookup')
@click.option('--user-id', required=True, help='Owning user id')
@click.option('--code', 'order_code', required=True, help='Order code')
@with_appcontext
def lookup_order(user_id, order_code):
    """Find orders by code for one user."""
    orders = order_service.get_orders_by_code(order_code, user_id)
    if not orders:
        click.echo("No matching orders.")
        return

    if len(orders) > 1:
        click.echo(f"WARN  {len(orders)} orders share this code")

    for order in orders:
        click.echo(
            f"{order['id']}  #{order['orderNumber']}  {order['status']}  "
            f"total={order['totalAmount']}  franchise={order.get('franchiseId') or '-'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(counters_group)
    app.cli.add_command(orders_group)
