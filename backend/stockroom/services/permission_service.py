# Overview: Service-layer operations for roles and permissions; seeding and grants.

"""
Role and permission bookkeeping.

Seeding functions are idempotent and safe to run on every deploy. Grant and
revoke functions back the CLI and admin tooling; the authorization decision
itself lives in authorization_service.
"""

from ..extensions import db
from ..models import Role, RolePermission, Permission, User, UserPermission
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLES, DEFAULT_ROLE_PERMISSIONS


def initialize_permissions() -> int:
    """
    Create Permission rows for every code in PERMISSION_DEFINITIONS.

    Returns the number of rows created.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()
        if existing:
            continue
        db.session.add(Permission(code=code, name=name, description=description, category=category))
        created_count += 1

    db.session.commit()
    return created_count


def create_default_roles() -> int:
    """Create admin, inventory_staff, warehouse_supervisor and management if missing."""
    created_count = 0
    for name, description in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=description))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions() -> int:
    """
    Link roles to their DEFAULT_ROLE_PERMISSIONS.

    Skips roles or permissions that do not exist yet and assignments that are
    already present. Returns the number of links created.
    """
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            continue

        for permission_code in permission_codes:
            permission = db.session.query(Permission).filter_by(code=permission_code).first()
            if not permission:
                continue

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def seed_roles_and_permissions() -> tuple[int, int, int]:
    """Roles, permissions and default links in one call (CLI and tests)."""
    roles = create_default_roles()
    permissions = initialize_permissions()
    links = assign_default_role_permissions()
    return roles, permissions, links


def _get_role_and_permission(role_name: str, permission_code: str) -> tuple[Role, Permission]:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    return role, permission


def grant_permission_to_role(role_name: str, permission_code: str) -> RolePermission:
    role, permission = _get_role_and_permission(role_name, permission_code)

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()
    if existing:
        return existing

    role_permission = RolePermission(role_id=role.id, permission_id=permission.id)
    db.session.add(role_permission)
    db.session.commit()
    return role_permission


def revoke_permission_from_role(role_name: str, permission_code: str) -> bool:
    """Returns False when the permission was not granted in the first place."""
    role, permission = _get_role_and_permission(role_name, permission_code)

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()
    if not role_permission:
        return False

    db.session.delete(role_permission)
    db.session.commit()
    return True


def grant_permission_to_user(user_id: int, permission_code: str) -> UserPermission:
    """Attach a permission directly to a user, independent of their role."""
    if not db.session.get(User, user_id):
        raise ValueError(f"User {user_id} not found")
    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    existing = db.session.query(UserPermission).filter_by(
        user_id=user_id,
        permission_id=permission.id
    ).first()
    if existing:
        return existing

    grant = UserPermission(user_id=user_id, permission_id=permission.id)
    db.session.add(grant)
    db.session.commit()
    return grant


def revoke_permission_from_user(user_id: int, permission_code: str) -> bool:
    grant = (
        db.session.query(UserPermission)
        .join(Permission, Permission.id == UserPermission.permission_id)
        .filter(UserPermission.user_id == user_id, Permission.code == permission_code)
        .first()
    )
    if not grant:
        return False

    db.session.delete(grant)
    db.session.commit()
    return True


def list_roles() -> list[Role]:
    return db.session.query(Role).order_by(Role.name).all()
