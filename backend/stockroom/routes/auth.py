# Overview: Flask API routes for login, logout and the caller's own account.

"""
Authentication API routes

Login issues a bearer token; every other route in the API expects it in the
Authorization header. Self-registration does not exist: accounts are created
by administrators (POST /api/users or `flask users create`).
"""

from flask import Blueprint, jsonify, g, request

from ..decorators import bearer_token, require_auth
from ..services import auth_service, session_service, user_service
from ..services.authorization_service import get_authorization, record_security_event
from .common import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _me_payload(user) -> dict:
    authz = get_authorization()
    data = user.to_dict()
    data["permissions"] = sorted(authz.permission_codes(user.id))
    data["is_admin"] = authz.is_admin(user)
    return data


@auth_bp.post("/login")
def login_route():
    """
    Request body:
    {
        "email": "admin@stockroom.local",
        "password": "..."
    }

    Returns {"user": User, "token": str}. Inactive and suspended accounts
    cannot log in.
    """
    data = json_body()
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        record_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            action="LOGIN",
            reason=f"Invalid credentials for {email}",
        )
        return jsonify({"error": "Invalid credentials"}), 401

    _session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return jsonify({"user": _me_payload(user), "token": token})


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"success": True})


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with roles and the effective permission list."""
    return jsonify(_me_payload(g.current_user))


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    """
    Request body:
    {
        "name": "...",    // optional
        "email": "..."    // optional
    }
    """
    user = user_service.update_profile(
        g.current_user.id, json_body(), principal=g.current_user, authz=get_authorization()
    )
    return jsonify(user.to_dict())


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """
    Request body:
    {
        "current_password": "...",
        "password": "...",
        "password_confirmation": "..."
    }

    Other sessions of the user are revoked; the current one stays valid.
    """
    user = user_service.change_password(
        g.current_user.id, json_body(), principal=g.current_user, authz=get_authorization()
    )
    session_service.revoke_all_user_sessions(user.id, "Password changed")
    _session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({"user": user.to_dict(), "token": token})
