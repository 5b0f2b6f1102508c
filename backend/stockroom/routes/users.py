# Overview: Flask API routes for user administration.

"""
User administration routes.

Self-service (own profile, own password) lives under /api/auth. Here:
- listing needs users.index, statistics and roles need users.index/roles.view
- a user may always read their own record; others need users.show
- writes are checked in the service layer
"""
from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission
from ..services import permission_service, user_service
from ..services.authorization_service import get_authorization
from ..validation import clean_bool
from .common import json_body, page_args, paginated


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("users.index")
def list_users_route():
    """Query params: search, role, is_active, limit, offset."""
    limit, offset = page_args()
    raw_active = request.args.get("is_active")
    users, total = user_service.list_users(
        search=request.args.get("search"),
        role=request.args.get("role"),
        is_active=clean_bool(raw_active) if raw_active is not None else None,
        limit=limit,
        offset=offset,
    )
    return paginated(users, total, limit, offset)


@users_bp.get("/statistics")
@require_auth
@require_permission("users.index")
def user_statistics_route():
    return user_service.user_statistics()


@users_bp.get("/roles")
@require_auth
@require_permission("roles.view")
def list_roles_route():
    return {"roles": [role.to_dict() for role in permission_service.list_roles()]}


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    get_authorization().require_self_or(g.current_user, user_id, "users.show")
    return user_service.get_user(user_id).to_dict()


@users_bp.post("")
@require_auth
def create_user_route():
    """
    Request body:
    {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "password": "...",
        "password_confirmation": "...",
        "role": "inventory_staff"
    }
    """
    user = user_service.create_user(json_body(), principal=g.current_user, authz=get_authorization())
    return user.to_dict(), 201


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    """Request body: {"name"?, "email"?, "password"?} (empty password keeps the current one).

    Requires users.edit; one's own password changes through PUT /api/auth/password.
    """
    user = user_service.update_user(user_id, json_body(), principal=g.current_user, authz=get_authorization())
    return user.to_dict()


@users_bp.delete("/<int:user_id>")
@require_auth
def delete_user_route(user_id: int):
    user_service.delete_user(user_id, principal=g.current_user, authz=get_authorization())
    return {"success": True}


@users_bp.post("/<int:user_id>/toggle-status")
@require_auth
def toggle_status_route(user_id: int):
    user = user_service.toggle_status(user_id, principal=g.current_user, authz=get_authorization())
    return user.to_dict()


@users_bp.post("/<int:user_id>/suspend")
@require_auth
def suspend_user_route(user_id: int):
    """Request body: {"reason"?: str}"""
    user = user_service.suspend_user(user_id, json_body(), principal=g.current_user, authz=get_authorization())
    return user.to_dict()


@users_bp.post("/<int:user_id>/unsuspend")
@require_auth
def unsuspend_user_route(user_id: int):
    user = user_service.unsuspend_user(user_id, principal=g.current_user, authz=get_authorization())
    return user.to_dict()


@users_bp.put("/<int:user_id>/role")
@require_auth
def assign_role_route(user_id: int):
    """Request body: {"role": "warehouse_supervisor"}"""
    user = user_service.assign_role(
        user_id, json_body().get("role"), principal=g.current_user, authz=get_authorization()
    )
    return user.to_dict()


@users_bp.delete("/<int:user_id>/role")
@require_auth
def remove_role_route(user_id: int):
    user = user_service.remove_role(user_id, principal=g.current_user, authz=get_authorization())
    return user.to_dict()
