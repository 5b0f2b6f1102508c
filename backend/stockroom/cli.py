# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: roles, permissions, default role links and one admin user.
# - python -m flask system init-permissions
#   Initialize permissions and assign defaults to roles.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Jane" --email jane@example.com --password "Password123!" --role inventory_staff
#
# Permissions:
# - python -m flask perms list [--role management] [--category TEMPLATES]
# - python -m flask perms grant management stock-out.view
# - python -m flask perms revoke management stock-out.view
# - python -m flask perms grant-user 7 reports.view
# - python -m flask perms check admin@stockroom.local templates.delete

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Role, User, UserRole
from .permissions import describe_permission, permissions_by_category, unknown_permission_codes
from .services import permission_service
from .services.auth_service import PasswordValidationError, hash_password
from .services.authorization_service import AuthorizationService


DEFAULT_ADMIN_EMAIL = "admin@stockroom.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=DEFAULT_ADMIN_EMAIL, show_default=True)
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, show_default=True)
@with_appcontext
def init_system(admin_email, admin_password):
    """Create roles, permissions and the first admin user (safe to re-run)."""
    click.echo("START Initializing stockroom...")

    roles, perms, links = permission_service.seed_roles_and_permissions()
    click.echo(f"PASS Roles created: {roles}, permissions created: {perms}, role links: {links}")

    existing = db.session.query(User).filter_by(email=admin_email.lower()).first()
    if existing:
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
    else:
        try:
            _create_user("Administrator", admin_email, admin_password, "admin")
            click.echo(f"PASS Created admin user: {admin_email}")
        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed: {str(e)}")
            return

    click.echo("\n" + "="*60)
    click.echo("DONE stockroom initialized")
    click.echo("="*60)
    click.echo("\nChange the default admin password before going to production.\n")


@system_group.command('init-permissions')
@with_appcontext
def init_permissions():
    """Create any missing roles and permissions and link the defaults."""
    roles, perms, links = permission_service.seed_roles_and_permissions()
    click.echo(f"PASS Roles created: {roles}, permissions created: {perms}, role links: {links}")


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


def _create_user(name: str, email: str, password: str, role_name: str | None) -> User:
    user = User(
        name=name,
        email=email.lower(),
        password_hash=hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12)),
    )
    db.session.add(user)
    db.session.flush()
    if role_name:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            db.session.rollback()
            raise click.ClickException(f"Role '{role_name}' not found. Run: python -m flask system init-permissions")
        db.session.add(UserRole(user_id=user.id, role_id=role.id))
    db.session.commit()
    return user


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', default='inventory_staff', show_default=True)
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a user with one role."""
    if db.session.query(User).filter_by(email=email.lower()).first():
        click.echo(f"FAIL User '{email}' already exists")
        return
    try:
        user = _create_user(name, email, password, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Active':<8} {'Suspended':<10} {'Role'}")
    click.echo("="*100)

    for user in users:
        roles_str = ", ".join(user.role_names) or "none"
        active_str = "Yes" if user.is_active else "No"
        suspended_str = "Yes" if user.is_suspended else "No"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<35} {active_str:<8} {suspended_str:<10} {roles_str}")

    click.echo("="*100 + "\n")


@click.group('perms')
def perms_group():
    """Permission inspection and repair commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List permissions, optionally for one role or one category."""
    if role:
        role_obj = db.session.query(Role).filter_by(name=role).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return

        codes = sorted(rp.permission.code for rp in role_obj.role_permissions)
        click.echo(f"\nPermissions for role: {role}")
        click.echo("-"*60)
        for code in codes:
            click.echo(f"  {code}")
        click.echo(f"\n Total: {len(codes)} permissions\n")
        return

    grouped = permissions_by_category()
    if category:
        if category not in grouped:
            click.echo(f"FAIL Unknown category '{category}'. Known: {', '.join(grouped)}")
            return
        grouped = {category: grouped[category]}

    for cat, codes in grouped.items():
        click.echo(f"\n[{cat}]")
        for code in codes:
            click.echo(f"  {code:<30} {describe_permission(code)['name']}")
    click.echo("")


@perms_group.command('grant')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def grant_permission_cli(role_name, permission_code):
    """Grant a permission to a role."""
    if unknown_permission_codes([permission_code]):
        click.echo(f"FAIL Unknown permission '{permission_code}'")
        return
    try:
        permission_service.grant_permission_to_role(role_name, permission_code)
        click.echo(f"PASS Granted '{permission_code}' to role '{role_name}'")
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")


@perms_group.command('revoke')
@click.argument('role_name')
@click.argument('permission_code')
@with_appcontext
def revoke_permission_cli(role_name, permission_code):
    """Revoke a permission from a role."""
    try:
        revoked = permission_service.revoke_permission_from_role(role_name, permission_code)
        if revoked:
            click.echo(f"PASS Revoked '{permission_code}' from role '{role_name}'")
        else:
            click.echo(f"WARN  Permission '{permission_code}' was not granted to '{role_name}'")
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")


@perms_group.command('grant-user')
@click.argument('user_id', type=int)
@click.argument('permission_code')
@with_appcontext
def grant_user_permission_cli(user_id, permission_code):
    """Grant a permission directly to one user."""
    try:
        permission_service.grant_permission_to_user(user_id, permission_code)
        click.echo(f"PASS Granted '{permission_code}' to user {user_id}")
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")


@perms_group.command('revoke-user')
@click.argument('user_id', type=int)
@click.argument('permission_code')
@with_appcontext
def revoke_user_permission_cli(user_id, permission_code):
    """Remove a directly granted permission from one user."""
    if permission_service.revoke_permission_from_user(user_id, permission_code):
        click.echo(f"PASS Revoked '{permission_code}' from user {user_id}")
    else:
        click.echo(f"WARN  Permission '{permission_code}' was not granted directly to user {user_id}")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission_code')
@with_appcontext
def check_permission_cli(email, permission_code):
    """Check if a user has a specific permission."""
    user = db.session.query(User).filter_by(email=email.lower()).first()

    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    authz = AuthorizationService(audit_denials=False)
    if authz.authorize(user, permission_code):
        click.echo(f"PASS User '{email}' HAS permission '{permission_code}'")
    else:
        click.echo(f"FAIL User '{email}' DOES NOT HAVE permission '{permission_code}'")

    info = describe_permission(permission_code)
    if info is None:
        click.echo(f"WARN  '{permission_code}' is not a known permission")

    click.echo(f"\nUser roles: {', '.join(sorted(authz.role_names(user.id))) or 'none'}")
    click.echo(f"Total permissions: {len(authz.permission_codes(user.id))}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
