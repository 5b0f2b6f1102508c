# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import AuthorizationDenied
from .services import session_service
from .services.authorization_service import get_authorization


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user (the acting principal) and g.session_context.
    Returns 401 for a missing, invalid, expired or revoked token, and for
    users who are inactive or suspended.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Gate a read endpoint on one permission. Mutating endpoints check inside
    the service layer instead, with the same AuthorizationService.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                get_authorization().require(g.current_user, permission_code)
            except AuthorizationDenied:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
