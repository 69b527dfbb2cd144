# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/posdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app posdesk.wsgi <group> <command> [options]
#
# Database bootstrap/repair:
# - flask --app posdesk.wsgi db upgrade
#   Apply migrations (preferred for real databases).
# - flask --app posdesk.wsgi db-admin init
#   Create any missing tables directly from the models (quick local setup).
# - flask --app posdesk.wsgi db-admin reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - flask --app posdesk.wsgi users list
#   List all accounts with active status and last login.
# - flask --app posdesk.wsgi users create --email owner@example.com --password "secret1"
#   Create an account (prompts if options are omitted).
#
# Catalog:
# - flask --app posdesk.wsgi products low-stock --email owner@example.com
#   List products at or below their low-stock threshold for one account.
#
# Maintenance:
# - flask --app posdesk.wsgi sessions cleanup --retention-days 30
#   Delete expired or revoked session tokens older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import session_service
from .services.auth_service import sign_up, normalize_email, PasswordValidationError, SignUpError
from .services.products_service import list_products
from .formatting import format_money
from .time_utils import to_utc_z


@click.group('db-admin')
def db_admin_group():
    """Database bootstrap and repair commands."""


@db_admin_group.command('init')
@with_appcontext
def init_db():
    """Create missing tables from the models (existing data is kept)."""
    db.create_all()
    click.echo("PASS Tables created. Use 'flask db upgrade' for migration-managed databases.")


@db_admin_group.command('reset')
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
    """Account inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Login email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (6+ characters)')
@with_appcontext
def create_user_cli(email, password):
    """Create an account."""
    try:
        user = sign_up(email, password)
    except (PasswordValidationError, SignUpError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8} {'Last login'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        last_login = to_utc_z(user.last_login_at) or "never"
        click.echo(f"{user.id:<5} {user.email:<40} {active_str:<8} {last_login}")

    click.echo("="*80 + "\n")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('low-stock')
@click.option('--email', required=True, help='Account whose catalog to inspect')
@with_appcontext
def low_stock_cli(email):
    """List products at or below their low-stock threshold."""
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        raise click.ClickException(f"No user with email {email}")

    products = list_products(user.id, low_stock_only=True)
    if not products:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Category':<12} {'Stock':>6} {'Threshold':>10} {'Price':>14}")
    for p in products:
        click.echo(
            f"{p.id:<6} {p.name[:30]:<30} {p.category:<12} {p.stock:>6} "
            f"{p.low_stock_threshold:>10} {format_money(p.price_cents):>14}"
        )
    click.echo(f"\nWARN {len(products)} product(s) need restocking.")


@click.group('sessions')
def sessions_group():
    """Session maintenance commands."""


@sessions_group.command('cleanup')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Delete expired or revoked sessions.

    Default retention: 30 days.
    """
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_admin_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(sessions_group)
