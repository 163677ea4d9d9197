# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fleur/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@fleur.local] [--admin-password "..."]
#   Idempotent bootstrap: creates tables, the admin login with its employee
#   record, and the default option vocabularies.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --email staff@fleur.local --password "secret1" --role staff
#   Create a user (prompts if options are omitted).
# - python -m flask users deactivate staff@fleur.local
#   Disable a login and revoke all of its sessions.
#
# Permission inspection:
# - python -m flask perms list [--role staff] [--category SALES]
#   List permission codes and the roles that hold them.
# - python -m flask perms check staff@fleur.local VOID_INVOICE
#   Show whether a user's role grants a permission.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked sessions older than the window.

import click
from flask.cli import with_appcontext

from .errors import FleurError
from .extensions import db
from .models import Employee, User
from .models.auth import USER_ROLES
from .permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_DEFINITIONS,
    get_all_permission_codes,
    get_permission_definition,
    get_permissions_by_category,
    validate_permission_code,
)
from .services import permission_service
from .services.auth_service import create_user, email_registered
from .services.employee_service import build_employee_for
from .services.session_service import cleanup_expired_sessions, revoke_all_user_sessions
from .services.taxonomy_service import seed_default_options


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@fleur.local', show_default=True)
@click.option('--admin-password', default='Admin123!', show_default=True)
@click.option('--admin-name', default='Quản trị viên', show_default=True)
@with_appcontext
def init_system(admin_email, admin_password, admin_name):
    """
    Initialize the shop: schema, admin account, default options.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Fleur...")

    db.create_all()
    click.echo("PASS Tables ready")

    if email_registered(admin_email):
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        try:
            user = create_user(email=admin_email, password=admin_password, role="admin", display_name=admin_name)
        except FleurError as e:
            raise click.ClickException(f"Failed to create admin: {e.message}")
        build_employee_for(user, name=admin_name, phone=None, zalo_name=None, position="ADMIN")
        db.session.commit()
        click.echo(f"PASS Created admin: {admin_email}")

    created = seed_default_options()
    click.echo(f"PASS Seeded {created} option values")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Fleur initialized")
    click.echo("=" * 60)


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(USER_ROLES), default='staff', show_default=True)
@click.option('--name', 'display_name', default=None)
@with_appcontext
def create_user_cli(email, password, role, display_name):
    """Create a login identity. Staff roles also get an Employee record."""
    try:
        user = create_user(email=email, password=password, role=role, display_name=display_name)
    except FleurError as e:
        raise click.ClickException(e.message)

    if role != "customer":
        position = {"admin": "ADMIN", "manager": "MANAGER"}.get(role, "STAFF")
        build_employee_for(user, name=user.display_name, phone=None, zalo_name=None, position=position)
        db.session.commit()

    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"\n{'ID':<5} {'Email':<32} {'Role':<10} {'Active':<7} {'Employee':<24}")
    click.echo("-" * 80)
    for user in users:
        employee = db.session.query(Employee).filter_by(user_id=user.id).first()
        click.echo(
            f"{user.id:<5} {user.email:<32} {user.role:<10} "
            f"{'yes' if user.is_active else 'no':<7} {employee.name if employee else '-':<24}"
        )


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_user_cli(email):
    """Disable a login and revoke its open sessions."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User not found: {email}")

    user.is_active = False
    db.session.commit()
    revoked = revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {user.email}; revoked {revoked} sessions")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(USER_ROLES), default=None, help='Only codes granted to this role')
@click.option('--category', default=None, help='Only codes in this category (e.g. SALES)')
def list_permissions_cli(role, category):
    """List permission codes with the roles that hold them."""
    if category:
        definitions = get_permissions_by_category(category.upper())
    else:
        definitions = PERMISSION_DEFINITIONS
    codes = [perm[0] for perm in definitions]
    if role:
        codes = [code for code in codes if code in DEFAULT_ROLE_PERMISSIONS[role]]

    if not codes:
        click.echo("No permissions found.")
        return

    click.echo(f"\n{'Code':<28} {'Category':<10} {'Roles'}")
    click.echo("-" * 80)
    for code in codes:
        definition = get_permission_definition(code)
        holders = [name for name, granted in DEFAULT_ROLE_PERMISSIONS.items() if code in granted]
        click.echo(f"{code:<28} {definition['category']:<10} {', '.join(holders)}")
    click.echo(f"\n{len(codes)} of {len(get_all_permission_codes())} permissions")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission_code')
@with_appcontext
def check_permission_cli(email, permission_code):
    """Check whether a user holds a permission."""
    permission_code = permission_code.upper()
    if not validate_permission_code(permission_code):
        raise click.ClickException(f"Unknown permission: {permission_code}")

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User not found: {email}")

    allowed = permission_service.user_has_permission(user, permission_code)
    click.echo(f"{'PASS' if allowed else 'FAIL'} {user.email} ({user.role}) "
               f"{'has' if allowed else 'does not have'} {permission_code}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    """Delete expired or revoked sessions."""
    deleted = cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} sessions older than {older_than_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
