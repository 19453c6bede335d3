# Overview: Bearer-token and role-permission guards for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .permissions import get_role_permissions
from .services import session_service


def bearer_token() -> str | None:
    """Token from "Authorization: Bearer <token>", or None."""
    scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer":
        return None
    return token.strip() or None


def _unauthorized(message: str):
    return jsonify({"error": message}), 401


def require_auth(view):
    """
    Resolve the bearer token before the view runs.

    On success g.current_user and g.session_context are set. A missing,
    unknown, expired or revoked token (or a deactivated user) gives 401.
    """
    @wraps(view)
    def guarded(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return _unauthorized("Authentication required")

        context = session_service.validate_session(token)
        if context is None:
            return _unauthorized("Invalid or expired token")

        g.session_context = context
        g.current_user = context.user
        return view(*args, **kwargs)

    return guarded


def require_permission(permission_code: str):
    """Role check; stack it under @require_auth."""
    def decorator(view):
        @wraps(view)
        def guarded(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return _unauthorized("Authentication required")

            if permission_code in get_role_permissions(user.role):
                return view(*args, **kwargs)

            current_app.logger.warning(
                "Permission denied: user=%s role=%s permission=%s path=%s",
                user.id, user.role, permission_code, request.path,
            )
            return jsonify({
                "error": "Permission denied",
                "required_permission": permission_code,
            }), 403

        return guarded
    return decorator
