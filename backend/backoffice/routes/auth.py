# Overview: Login, logout and current-user endpoints.

"""
Back-office users sign in with email and password and get an opaque bearer
token back. Accounts are provisioned by an administrator through the CLI
(`flask users create`); there is no self-registration.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import bearer_token, require_auth
from ..permissions import get_role_permissions
from ..services import auth_service, session_service
from .errors import json_error

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _identity(user, session) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": sorted(get_role_permissions(user.role)),
        "session": session.to_dict(),
    }


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email, password = data.get("email"), data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.authenticate(email, password)
        if user is None:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except Exception as exc:
        return json_error(exc, "Failed to login user")

    return jsonify({**_identity(user, session), "token": token, "message": "Login successful"}), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(_identity(g.current_user, g.session_context.session)), 200
