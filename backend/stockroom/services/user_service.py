# Overview: Service-layer operations for user administration and self-service.

"""
User Service

Admin operations (create, update, delete, status toggle, suspension, role
assignment) need the matching users.* permission. Two self-service operations
bypass that: anyone may update their own profile and change their own
password. Deleting, deactivating or suspending one's own account is refused
for everybody so nobody can lock themselves out.

Users carry exactly one role. assign_role replaces whatever role the user had;
remove_role leaves the user with none.

An empty password on update means "keep the current password".
"""

from __future__ import annotations

import logging

from flask import current_app

from ..errors import FieldErrors, NotFound, ValidationFailed
from ..extensions import db
from ..models import Role, User, UserRole
from ..validation import clean_bool, clean_string
from .auth_service import PasswordValidationError, hash_password, verify_password
from .concurrency import atomic
from . import session_service
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)


def _hash(password: str) -> str:
    return hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12))


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User", user_id)
    return user


def get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if role is None:
        raise NotFound("Role", role_name)
    return role


def list_users(
    *,
    search: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
    limit: int = 15,
    offset: int = 0,
):
    """Returns (users, total)."""
    query = db.session.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.join(UserRole, UserRole.user_id == User.id).join(Role, Role.id == UserRole.role_id)
        query = query.filter(Role.name == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()
    return users, total


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def _clean_email(payload: dict, errors: FieldErrors, *, required: bool, exclude_id: int | None = None) -> str | None:
    email = clean_string(payload, "email", errors, max_length=255, required=required)
    if email is None:
        return None
    email = email.lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        errors.add("email", "The email field must be a valid email address.")
        return None
    if _email_taken(email, exclude_id=exclude_id):
        errors.add("email", "The email has already been taken.")
        return None
    return email


def _clean_password(payload: dict, errors: FieldErrors, field: str = "password") -> str | None:
    """Hash of the new password, or None when the field is absent or empty."""
    password = payload.get(field)
    if password is None or password == "":
        return None
    if not isinstance(password, str):
        errors.add(field, f"The {field} field must be a string.")
        return None
    confirmation = payload.get(f"{field}_confirmation")
    if confirmation is not None and confirmation != password:
        errors.add(field, f"The {field} field confirmation does not match.")
        return None
    try:
        return _hash(password)
    except PasswordValidationError as e:
        errors.add(field, str(e))
        return None


def _sync_role(user: User, role: Role | None) -> None:
    """Single-role sync: drop every current assignment, then add role (if any)."""
    for user_role in list(user.user_roles):
        user.user_roles.remove(user_role)
    db.session.flush()
    if role is not None:
        user.user_roles.append(UserRole(role_id=role.id))


def create_user(payload: dict, *, principal, authz) -> User:
    """
    payload: {"name", "email", "password", "password_confirmation"?, "role"?, "is_active"?}
    """
    authz.require(principal, "users.create")

    errors = FieldErrors()
    name = clean_string(payload, "name", errors, max_length=255)
    email = _clean_email(payload, errors, required=True)
    if not payload.get("password"):
        errors.add("password", "The password field is required.")
    password_hash = _clean_password(payload, errors)
    role = None
    if payload.get("role"):
        role = db.session.query(Role).filter_by(name=payload["role"]).first()
        if role is None:
            errors.add("role", "The selected role is invalid.")
    errors.raise_if_any()

    with atomic():
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            is_active=clean_bool(payload.get("is_active"), default=True),
        )
        db.session.add(user)
        db.session.flush()
        _sync_role(user, role)

    logger.info("user created id=%s email=%s by user_id=%s", user.id, user.email, principal.id)
    return user


def _apply_account_changes(user: User, payload: dict, *, allow_password: bool) -> User:
    errors = FieldErrors()
    name = clean_string(payload, "name", errors, max_length=255, required="name" in payload)
    email = _clean_email(payload, errors, required="email" in payload, exclude_id=user.id)
    password_hash = _clean_password(payload, errors) if allow_password else None
    errors.raise_if_any()

    with atomic():
        if name is not None:
            user.name = name
        if email is not None and email != user.email:
            user.email = email
            user.email_verified_at = None
        if password_hash is not None:
            user.password_hash = password_hash
    return user


def update_user(user_id: int, payload: dict, *, principal, authz) -> User:
    """
    Admin edit of an account. An empty password leaves the current one in
    place. One's own password only changes through change_password, which
    asks for the current one and ends the other sessions.
    """
    authz.require(principal, "users.edit")
    user = get_user(user_id)

    if principal.id == user_id and payload.get("password"):
        raise ValidationFailed.single(
            "password", "Use the password change form to change your own password."
        )
    _apply_account_changes(user, payload, allow_password=True)

    logger.info("user updated id=%s by user_id=%s", user_id, principal.id)
    return user


def update_profile(user_id: int, payload: dict, *, principal, authz) -> User:
    """Name and email only. Always allowed on one's own account."""
    authz.require_self_or(principal, user_id, "users.edit")
    user = get_user(user_id)
    _apply_account_changes(user, payload, allow_password=False)

    logger.info("profile updated id=%s by user_id=%s", user_id, principal.id)
    return user


def change_password(user_id: int, payload: dict, *, principal, authz) -> User:
    """
    payload: {"current_password", "password", "password_confirmation"}

    Changing one's own password requires the current one. Every other session
    of the user is revoked afterwards.
    """
    authz.require_self_or(principal, user_id, "users.edit")
    user = get_user(user_id)

    errors = FieldErrors()
    if principal.id == user_id:
        current = payload.get("current_password") or ""
        if not verify_password(current, user.password_hash):
            errors.add("current_password", "The current password is incorrect.")
    if not payload.get("password"):
        errors.add("password", "The password field is required.")
    password_hash = _clean_password(payload, errors)
    errors.raise_if_any()

    with atomic():
        user.password_hash = password_hash

    logger.info("password changed user_id=%s by user_id=%s", user_id, principal.id)
    return user


def delete_user(user_id: int, *, principal, authz) -> bool:
    authz.require_not_self(principal, user_id, "users.delete")

    with atomic():
        user = get_user(user_id)
        email = user.email
        db.session.delete(user)

    logger.info("user deleted id=%s email=%s by user_id=%s", user_id, email, principal.id)
    return True


def toggle_status(user_id: int, *, principal, authz) -> User:
    """Flip is_active. Deactivation ends the user's sessions."""
    authz.require_not_self(principal, user_id, "users.toggle-status")

    with atomic():
        user = get_user(user_id)
        user.is_active = not user.is_active
        if not user.is_active:
            session_service.revoke_all_user_sessions(user.id, "Account deactivated", commit=False)

    logger.info("user status toggled id=%s is_active=%s by user_id=%s", user_id, user.is_active, principal.id)
    return user


def suspend_user(user_id: int, payload: dict, *, principal, authz) -> User:
    authz.require_not_self(principal, user_id, "users.suspend")

    errors = FieldErrors()
    reason = clean_string(payload, "reason", errors, max_length=500, required=False)
    errors.raise_if_any()

    with atomic():
        user = get_user(user_id)
        if user.is_suspended:
            raise ValidationFailed.single("is_suspended", "The user is already suspended.")
        user.is_suspended = True
        user.suspended_at = utcnow()
        user.suspension_reason = reason
        session_service.revoke_all_user_sessions(user.id, "Account suspended", commit=False)

    logger.info("user suspended id=%s by user_id=%s", user_id, principal.id)
    return user


def unsuspend_user(user_id: int, *, principal, authz) -> User:
    authz.require_not_self(principal, user_id, "users.unsuspend")

    with atomic():
        user = get_user(user_id)
        if not user.is_suspended:
            raise ValidationFailed.single("is_suspended", "The user is not suspended.")
        user.is_suspended = False
        user.suspended_at = None
        user.suspension_reason = None

    logger.info("user unsuspended id=%s by user_id=%s", user_id, principal.id)
    return user


def assign_role(user_id: int, role_name: str, *, principal, authz) -> User:
    """Replace the user's role with role_name."""
    authz.require(principal, "users.assign-role")

    if not role_name:
        raise ValidationFailed.single("role", "The role field is required.")

    with atomic():
        user = get_user(user_id)
        role = db.session.query(Role).filter_by(name=role_name).first()
        if role is None:
            raise ValidationFailed.single("role", "The selected role is invalid.")
        _sync_role(user, role)

    logger.info("role assigned user_id=%s role=%s by user_id=%s", user_id, role_name, principal.id)
    return user


def remove_role(user_id: int, *, principal, authz) -> User:
    """Leave the user without a role."""
    authz.require(principal, "users.assign-role")

    with atomic():
        user = get_user(user_id)
        _sync_role(user, None)

    logger.info("role removed user_id=%s by user_id=%s", user_id, principal.id)
    return user


def user_statistics() -> dict:
    total = db.session.query(db.func.count(User.id)).scalar()
    active = db.session.query(db.func.count(User.id)).filter(User.is_active.is_(True)).scalar()
    suspended = db.session.query(db.func.count(User.id)).filter(User.is_suspended.is_(True)).scalar()
    return {
        "total_users": total,
        "active_users": active,
        "inactive_users": total - active,
        "suspended_users": suspended,
    }
