# Overview: Flask CLI command groups for bootstrap and tenant setup.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--org-code DEFAULT]
#   Idempotent bootstrap: default org plus an admin user (admin / Password123!, PIN 1234).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Corp" --code "ACME"
#
# Users, operators and suppliers:
# - python -m flask users create --org-id 1 --username admin --email admin@example.com --role ADMIN --pin 1234
# - python -m flask operators create --org-id 1 --name "Juan" --pin 4321
# - python -m flask suppliers create --org-id 1 --name "Acme Distribution" --tax-id 900123456

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Organization, Supplier, User
from .models.auth import ROLE_ADMIN, ROLE_STAFF
from .services import auth_service, identity_service


DEFAULT_PASSWORD = "Password123!"
DEFAULT_PIN = "1234"


def _get_org(org_id: int | None) -> Organization | None:
    if org_id:
        org = db.session.query(Organization).filter_by(id=org_id).first()
        if not org:
            click.echo(f"FAIL Organization ID {org_id} not found")
        return org
    org = db.session.query(Organization).order_by(Organization.id).first()
    if not org:
        click.echo("FAIL No organization found. Run: flask system init")
    return org


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@with_appcontext
def init_system(org_name, org_code):
    """
    Initialize the system: default organization and an admin user.

    SECURITY: Change the default password and PIN immediately in production!
    """
    click.echo("START Initializing system...")
    db.create_all()

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    admin = db.session.query(User).filter_by(org_id=org.id, username="admin").first()
    if not admin:
        admin = auth_service.create_user(
            org_id=org.id,
            username="admin",
            email=f"admin@{org.code.lower()}.local",
            name="Administrator",
            password=DEFAULT_PASSWORD,
            role=ROLE_ADMIN,
            security_pin=DEFAULT_PIN,
        )
        click.echo(f"PASS Created admin user (ID: {admin.id}) password={DEFAULT_PASSWORD} pin={DEFAULT_PIN}")
    else:
        click.echo("PASS Admin user already exists")

    click.echo("DONE System initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*64)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    click.echo("="*64)
    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")
    click.echo("="*64 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', help='Display name (defaults to username)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_STAFF]), default=ROLE_STAFF, help='Role')
@click.option('--pin', default=None, help='Authorization PIN (stored hashed)')
@with_appcontext
def create_user_cli(org_id, username, email, name, password, role, pin):
    """Create a user within an organization."""
    org = _get_org(org_id)
    if not org:
        return
    try:
        user = auth_service.create_user(
            org_id=org.id,
            username=username,
            email=email,
            name=name or username,
            password=password,
            role=role,
            security_pin=pin,
        )
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, Role: {user.role}) in '{org.name}'")


@click.group('operators')
def operators_group():
    """Field operator commands."""


@operators_group.command('create')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--name', required=True, help='Operator name')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='Operator PIN (4-8 digits)')
@with_appcontext
def create_operator_cli(org_id, name, pin):
    """Create a field operator with a PIN."""
    org = _get_org(org_id)
    if not org:
        return
    try:
        operator = identity_service.create_operator(org.id, name, pin)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created operator {operator.name} (ID: {operator.id}) in '{org.name}'")


@click.group('suppliers')
def suppliers_group():
    """Supplier commands."""


@suppliers_group.command('create')
@click.option('--org-id', type=int, help='Organization ID (uses default if not specified)')
@click.option('--name', required=True, help='Supplier name')
@click.option('--tax-id', default=None, help='Tax identification number')
@click.option('--phone', default=None, help='Phone')
@with_appcontext
def create_supplier_cli(org_id, name, tax_id, phone):
    """Create a supplier."""
    org = _get_org(org_id)
    if not org:
        return
    existing = db.session.query(Supplier).filter_by(org_id=org.id, name=name).first()
    if existing:
        click.echo(f"FAIL Supplier '{name}' already exists (ID: {existing.id})")
        return
    supplier = Supplier(org_id=org.id, name=name, tax_id=tax_id, phone=phone)
    db.session.add(supplier)
    db.session.commit()
    click.echo(f"PASS Created supplier {supplier.name} (ID: {supplier.id}) in '{org.name}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(operators_group)
    app.cli.add_command(suppliers_group)
