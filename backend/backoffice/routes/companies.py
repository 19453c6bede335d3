# Overview: Flask API routes for client companies; parses input and returns JSON responses.

"""
Client company routes.

- Read operations require VIEW_COMPANIES permission
- Write operations require MANAGE_COMPANIES permission

Discounts travel as discount_percent on the wire and are stored in basis points.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Company
from ..services import company_service
from ..services.pricing_service import percent_to_bps
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_company,
    validate_payload,
)
from .errors import json_error

COMPANY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "tax_id", "address", "contact_name", "phone", "email",
        "payment_method", "discount_bps", "is_active",
    },
    required_on_create={"name", "contact_name"},
)

companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


def _company_patch(payload: dict, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    if "discount_percent" in payload:
        if "discount_bps" in payload:
            raise ValidationError("Send either discount_percent or discount_bps, not both")
        payload["discount_bps"] = percent_to_bps(payload.pop("discount_percent"))
    patch = validate_payload(model=Company, payload=payload, policy=COMPANY_POLICY, partial=partial)
    enforce_rules_company(patch)
    return patch


@companies_bp.get("")
@require_auth
@require_permission("VIEW_COMPANIES")
def list_companies_route():
    """
    Query params:
    - search: matches name, contact name or tax id
    - status: all | active | inactive (default all)
    """
    status = request.args.get("status", "all")
    if status not in ("all", "active", "inactive"):
        return jsonify({"error": "status must be one of: all, active, inactive"}), 400
    companies = company_service.list_companies(
        search=request.args.get("search"),
        status=status,
    )
    return jsonify({
        "items": [c.to_dict() for c in companies],
        "count": len(companies),
    })


@companies_bp.post("")
@require_auth
@require_permission("MANAGE_COMPANIES")
def create_company_route():
    try:
        patch = _company_patch(request.get_json(silent=True) or {}, partial=False)
        company = company_service.create_company(patch)
    except Exception as exc:
        return json_error(exc, "Failed to create company")
    return jsonify(company.to_dict()), 201


@companies_bp.get("/<int:company_id>")
@require_auth
@require_permission("VIEW_COMPANIES")
def get_company_route(company_id: int):
    try:
        company = company_service.get_company(company_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify(company.to_dict())


@companies_bp.patch("/<int:company_id>")
@require_auth
@require_permission("MANAGE_COMPANIES")
def update_company_route(company_id: int):
    try:
        patch = _company_patch(request.get_json(silent=True) or {}, partial=True)
        company = company_service.update_company(company_id, patch)
    except Exception as exc:
        return json_error(exc, "Failed to update company")
    return jsonify(company.to_dict())


@companies_bp.post("/<int:company_id>/toggle")
@require_auth
@require_permission("MANAGE_COMPANIES")
def toggle_company_route(company_id: int):
    try:
        company = company_service.toggle_company_status(company_id)
    except Exception as exc:
        return json_error(exc, "Failed to toggle company")
    return jsonify(company.to_dict())


@companies_bp.delete("/<int:company_id>")
@require_auth
@require_permission("MANAGE_COMPANIES")
def delete_company_route(company_id: int):
    """Companies with history are deactivated instead of deleted."""
    try:
        outcome = company_service.delete_company(company_id)
    except Exception as exc:
        return json_error(exc, "Failed to delete company")
    return jsonify({"ok": True, "outcome": outcome})
