# Overview: Flask CLI command groups for bootstrap, tenant administration and statement runs.

# backend/consignment/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create all tables that don't exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organizations:
# - python -m flask orgs list
# - python -m flask orgs create --name "Second Chances" --email owner@example.com --password "Password123!"
#   Create a shop with its OWNER user (BASIC trial).
# - python -m flask orgs set-subscription --org-id 1 --status ACTIVE --tier PRO
#
# Users:
# - python -m flask users create --org-id 1 --email clerk@example.com --password "Password123!" --role CLERK
#
# Statements:
# - python -m flask statements generate --org-id 1 --year 2025 --month 11
#   Generate statements for every active consignor for the month.

import click
from flask.cli import with_appcontext

from .extensions import db
from .enums import SubscriptionStatus, SubscriptionTier, UserRole
from .services import auth_service, organization_service, statement_service
from .validation import DomainError


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left untouched)."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask orgs create' to add a shop.")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = organization_service.list_organizations()
    if not orgs:
        click.echo("No organizations found.")
        return
    for org in orgs:
        state = "active" if org.is_active else "inactive"
        click.echo(
            f"{org.id:>4}  {org.slug:<30} {org.subscription_tier:<10} {org.subscription_status:<10} {state}  {org.name}"
        )


@orgs_group.command('create')
@click.option('--name', required=True, help='Shop name')
@click.option('--slug', default=None, help='Login slug (derived from name when omitted)')
@click.option('--email', required=True, help='Owner email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
@with_appcontext
def create_org(name, slug, email, password):
    """Create a shop and its OWNER user."""
    try:
        org, owner = auth_service.register_organization(
            shop_name=name, email=email, password=password, slug=slug
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created organization {org.name} (ID: {org.id}, slug: {org.slug}) with owner {owner.email}")


@orgs_group.command('set-subscription')
@click.option('--org-id', type=int, required=True)
@click.option('--status', type=click.Choice([s.value for s in SubscriptionStatus], case_sensitive=False), default=None)
@click.option('--tier', type=click.Choice([t.value for t in SubscriptionTier], case_sensitive=False), default=None)
@with_appcontext
def set_subscription(org_id, status, tier):
    try:
        org = organization_service.update_subscription(org_id, status=status, tier=tier)
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {org.slug}: {org.subscription_status} / {org.subscription_tier}")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True)
@click.option('--email', required=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice([r.value for r in UserRole], case_sensitive=False), default=UserRole.CLERK.value)
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_cmd(org_id, email, password, role, first_name, last_name):
    try:
        user = auth_service.create_user(
            org_id=org_id,
            email=email,
            password=password,
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role}) in org {user.org_id}")


@click.group('statements')
def statements_group():
    """Consignor statement runs."""


@statements_group.command('generate')
@click.option('--org-id', type=int, required=True)
@click.option('--year', type=int, required=True)
@click.option('--month', type=click.IntRange(1, 12), required=True)
@with_appcontext
def generate_statements(org_id, year, month):
    """Generate statements for every active consignor for a month."""
    try:
        organization_service.get_organization(org_id)
        result = statement_service.generate_statements_for_month(org_id, year, month)
    except DomainError as e:
        raise click.ClickException(e.message)

    click.echo(
        f"PASS {len(result['generated'])}/{result['consignor_count']} statements generated "
        f"for {result['period_start']}..{result['period_end']}"
    )
    for failure in result["failures"]:
        click.echo(f"FAIL consignor {failure['consignor_id']}: {failure['error']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(statements_group)
