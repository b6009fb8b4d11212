# Overview: Flask CLI command groups for bootstrap, inspection, and reporting.

# backend/lucciole/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--password "secret1"]
#   Idempotent bootstrap: creates tables and one login per role-table entry.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data, log included).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List logins with their role and active status.
# - python -m flask users create --email bar@lucciole.app --password "secret1"
#   Create a login (the email must already be in ROLE_TABLE).
#
# Reports:
# - python -m flask reports sales --start 2024-01-01 --end 2024-01-31 [--name coke]
#   Print the per-item table and revenue chart for a window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .catalog import get_catalog
from .services.auth_service import create_user, role_for_user, PasswordValidationError
from .services import reporting_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--password', default='lucciole', show_default=True, help='Password for every default login')
@with_appcontext
def init_system(password):
    """
    Create the schema and one login per ROLE_TABLE entry.

    Existing logins are left untouched.

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing inventory system...")
    db.create_all()
    click.echo("PASS Tables ready")

    click.echo("\nUSERS Creating default logins...")
    for email, role in sorted(get_catalog().role_table.items()):
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"WARN  {email} already exists, skipping...")
            continue
        try:
            create_user(email, password)
            click.echo(f"PASS Created {email} with role '{role}'")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Could not create {email}: {e}")

    click.echo("\nDONE System initialized. Change default passwords in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the transaction log!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Login email or bare username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, password):
    """Create a login. Its role comes from ROLE_TABLE."""
    try:
        user = create_user(email, password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{role_for_user(user)}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all logins with their roles."""
    users = db.session.query(User).order_by(User.email.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Email':<35} {'Active':<8} {'Role'}")
    click.echo("=" * 70)
    for user in users:
        active = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.email:<35} {active:<8} {role_for_user(user)}")
    click.echo("=" * 70 + "\n")


@click.group('reports')
def reports_group():
    """Financial report commands."""


@reports_group.command('sales')
@click.option('--start', required=True, type=click.DateTime(formats=['%Y-%m-%d']), help='First day (YYYY-MM-DD)')
@click.option('--end', required=True, type=click.DateTime(formats=['%Y-%m-%d']), help='Last day (YYYY-MM-DD)')
@click.option('--name', default=None, help='Case-insensitive item name filter')
@with_appcontext
def sales_report_cli(start, end, name):
    """Print loaded/sold/revenue/cost/margin per item plus the revenue chart."""
    try:
        report = reporting_service.generate_report(start.date(), end.date(), name)
    except ValueError as e:
        raise click.BadParameter(str(e))
    except reporting_service.ReportGenerationFailure as e:
        click.echo(f"FAIL Report generation failed: {e}")
        return

    data = report.to_dict()
    click.echo(f"\n{'Item':<30} {'Loaded':>10} {'Sold':>10} {'Revenue':>10} {'Cost':>10} {'Margin':>10}")
    click.echo("-" * 85)
    for row in data["rows"]:
        click.echo(
            f"{row['item_name']:<30} {row['loaded']:>10} {row['sold']:>10} "
            f"{row['revenue']:>10} {row['cost']:>10} {row['margin']:>10}"
        )
    totals = data["totals"]
    click.echo("-" * 85)
    click.echo(f"{'TOTAL':<52} {totals['revenue']:>10} {totals['cost']:>10} {totals['margin']:>10}")

    click.echo(f"\nRevenue by {data['granularity']}:")
    for point in data["chart"]:
        click.echo(f"  {point['bucket']}  {point['revenue']}")


def register_commands(app):
    """Register all CLI commands with the Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(reports_group)
