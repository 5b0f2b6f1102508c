# Overview: Authorization predicate consulted by every mutating service operation.

"""
Role/permission authorization.

The application owns one AuthorizationService (app.extensions["authorization"]).
Routes hand it to the service layer explicitly; services never look
permissions up through a global.

Resolution order for authorize(principal, action):
1. No principal -> deny
2. Principal holds the admin role -> allow
3. Otherwise allow iff the permission is granted directly to the principal
   or to any of the principal's roles

Nothing is cached: every call re-reads the current assignments.
"""

from __future__ import annotations

import logging

from flask import current_app, has_request_context, request

from ..errors import AuthorizationDenied
from ..extensions import db
from ..models import User, UserRole, Role, RolePermission, Permission, UserPermission, SecurityEvent
from ..permissions import ADMIN_ROLE
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)


class AuthorizationService:
    """Answers "may this principal do this?" against live role and permission rows."""

    def __init__(self, *, audit_denials: bool = True):
        self.audit_denials = audit_denials

    def role_names(self, user_id: int) -> set[str]:
        rows = (
            db.session.query(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id)
            .all()
        )
        return {name for (name,) in rows}

    def permission_codes(self, user_id: int) -> set[str]:
        """Union of permissions granted through roles and granted directly."""
        via_roles = (
            db.session.query(Permission.code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .filter(UserRole.user_id == user_id)
            .all()
        )
        direct = (
            db.session.query(Permission.code)
            .join(UserPermission, UserPermission.permission_id == Permission.id)
            .filter(UserPermission.user_id == user_id)
            .all()
        )
        return {code for (code,) in via_roles} | {code for (code,) in direct}

    def is_admin(self, principal: User | None) -> bool:
        if principal is None:
            return False
        return ADMIN_ROLE in self.role_names(principal.id)

    def authorize(self, principal: User | None, action: str) -> bool:
        if principal is None:
            return False
        if self.is_admin(principal):
            return True
        return action in self.permission_codes(principal.id)

    def require(self, principal: User | None, action: str) -> None:
        """Raise AuthorizationDenied unless authorize() allows the action."""
        if not self.authorize(principal, action):
            self._deny(principal, action, f"Missing permission: {action}")

    def require_self_or(self, principal: User | None, target_user_id: int, action: str) -> None:
        """
        Self-access override: a principal may always act on their own account
        (profile update, password change); anyone else needs the permission.
        """
        if principal is not None and principal.id == target_user_id:
            return
        self.require(principal, action)

    def require_not_self(self, principal: User | None, target_user_id: int, action: str) -> None:
        """
        Lockout guard: actions like deleting or deactivating an account are
        never allowed on one's own account, not even for admins.
        """
        if principal is not None and principal.id == target_user_id:
            self._deny(principal, action, f"{action} is not allowed on your own account",
                       message="You cannot perform this action on your own account")
        self.require(principal, action)

    def _deny(self, principal: User | None, action: str, reason: str, message: str = "Permission denied"):
        user_id = principal.id if principal is not None else None
        logger.warning("authorization denied user_id=%s action=%s reason=%s", user_id, action, reason)
        if self.audit_denials:
            record_security_event(
                user_id=user_id,
                event_type="PERMISSION_DENIED",
                success=False,
                action=action,
                reason=reason,
            )
        raise AuthorizationDenied(action, message)


def record_security_event(
    *,
    user_id: int | None,
    event_type: str,
    success: bool,
    action: str | None = None,
    reason: str | None = None,
) -> SecurityEvent:
    """
    Append a security event. Request details are captured when called inside a
    request. Commits immediately; callers invoke it before opening a write
    transaction.
    """
    resource = ip_address = user_agent = None
    if has_request_context():
        resource = request.path
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_authorization() -> AuthorizationService:
    """The application's AuthorizationService, for route handlers to pass down."""
    return current_app.extensions["authorization"]
