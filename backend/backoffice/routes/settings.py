from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import settings_service
from .errors import json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/prices")
@require_auth
@require_permission("VIEW_SETTINGS")
def get_prices_route():
    return jsonify(settings_service.get_price_table().to_dict())


@settings_bp.put("/prices")
@require_auth
@require_permission("MANAGE_SETTINGS")
def put_prices_route():
    """Body: {"P": 1500, "M": 1800, "G": 2200}; sizes left out keep their price."""
    try:
        table = settings_service.save_price_table(
            request.get_json(silent=True) or {}, user_id=g.current_user.id
        )
    except Exception as exc:
        return json_error(exc, "Failed to save prices")
    return jsonify(table.to_dict())


@settings_bp.delete("/prices")
@require_auth
@require_permission("MANAGE_SETTINGS")
def reset_prices_route():
    try:
        table = settings_service.reset_price_table()
    except Exception as exc:
        return json_error(exc, "Failed to reset prices")
    return jsonify(table.to_dict())


@settings_bp.get("/business")
@require_auth
@require_permission("VIEW_SETTINGS")
def get_business_route():
    return jsonify({
        "profile": settings_service.get_business_profile(),
        "templates": settings_service.get_templates(),
    })


@settings_bp.put("/business")
@require_auth
@require_permission("MANAGE_SETTINGS")
def put_business_route():
    """Body: {"profile": {...}, "templates": {...}}; either part may be left out."""
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        profile = payload.get("profile")
        templates = payload.get("templates")
        if profile is not None:
            settings_service.save_business_profile(profile, user_id=g.current_user.id)
        if templates is not None:
            settings_service.save_templates(templates, user_id=g.current_user.id)
    except Exception as exc:
        return json_error(exc, "Failed to save business settings")
    return jsonify({
        "profile": settings_service.get_business_profile(),
        "templates": settings_service.get_templates(),
    })
