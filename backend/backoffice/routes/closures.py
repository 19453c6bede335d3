# Overview: Flask API routes for monthly closures and their lifecycle actions.

"""
Monthly closure routes.

Lifecycle actions answer 200 with the updated closure whether the delivery
succeeded or not; a failed delivery shows up as an error_* status with
last_error set. Actions attempted from the wrong status answer 409.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..models import Closure
from ..services import closure_lifecycle_service as lifecycle
from ..services import closure_service
from ..services.closure_service import OVERRIDABLE_FIELDS
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_closure_override,
    validate_payload,
)
from .errors import json_error
from backoffice.time_utils import today

OVERRIDE_POLICY = ModelValidationPolicy(writable_fields=set(OVERRIDABLE_FIELDS))

closures_bp = Blueprint("closures", __name__, url_prefix="/api/closures")


def _period(source: dict) -> tuple[int, int]:
    now = today()
    month = source.get("month")
    year = source.get("year")
    return (
        coerce_int("month", month) if month not in (None, "") else now.month,
        coerce_int("year", year) if year not in (None, "") else now.year,
    )


@closures_bp.get("")
@require_auth
@require_permission("VIEW_CLOSURES")
def list_closures_route():
    """
    Query params:
    - month, year: default to the current month
    - status: optional closure status filter
    """
    try:
        month, year = _period(request.args)
        status = request.args.get("status")
        if status:
            status = lifecycle.parse_status(status).value
        closures = closure_service.list_closures(month, year, status=status)
    except Exception as exc:
        return json_error(exc, "Failed to list closures")
    return jsonify({
        "month": month,
        "year": year,
        "items": [lifecycle.describe(c) for c in closures],
        "count": len(closures),
        "stats": closure_service.closure_stats(closures),
    })


@closures_bp.post("/generate")
@require_auth
@require_permission("GENERATE_CLOSURES")
def generate_closures_route():
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        month, year = _period(payload)
        result = closure_service.generate_closures(month, year)
    except Exception as exc:
        return json_error(exc, "Failed to generate closures")
    return jsonify({
        "month": month,
        "year": year,
        "count": result["count"],
        "items": [lifecycle.describe(c) for c in result["closures"]],
    })


@closures_bp.get("/<int:closure_id>")
@require_auth
@require_permission("VIEW_CLOSURES")
def get_closure_route(closure_id: int):
    try:
        closure = closure_service.get_closure(closure_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify(lifecycle.describe(closure))


@closures_bp.patch("/<int:closure_id>")
@require_auth
@require_permission("OVERRIDE_CLOSURES")
def override_closure_route(closure_id: int):
    """
    Hand-edit totals/notes. Body: {"total_p": .., ..., "reason": "..."}.
    Status is never changed here.
    """
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        payload = dict(payload)
        reason = payload.pop("reason", None)
        patch = validate_payload(model=Closure, payload=payload, policy=OVERRIDE_POLICY, partial=True)
        enforce_rules_closure_override(patch)
        closure = closure_service.override_closure(
            closure_id, patch, user_id=g.current_user.id, reason=reason
        )
    except Exception as exc:
        return json_error(exc, "Failed to override closure")
    return jsonify(lifecycle.describe(closure))


@closures_bp.get("/<int:closure_id>/adjustments")
@require_auth
@require_permission("VIEW_CLOSURES")
def list_adjustments_route(closure_id: int):
    try:
        adjustments = closure_service.list_adjustments(closure_id)
    except Exception as exc:
        return json_error(exc)
    return jsonify({
        "items": [a.to_dict() for a in adjustments],
        "count": len(adjustments),
    })


@closures_bp.delete("/<int:closure_id>")
@require_auth
@require_permission("DELETE_CLOSURES")
def delete_closure_route(closure_id: int):
    try:
        closure_service.delete_closure(closure_id)
    except Exception as exc:
        return json_error(exc, "Failed to delete closure")
    return jsonify({"ok": True})


def _run_action(action, closure_id: int, **kwargs):
    try:
        closure = action(closure_id, **kwargs)
    except Exception as exc:
        return json_error(exc, f"Closure action {action.__name__} failed")
    return jsonify(lifecycle.describe(closure))


@closures_bp.post("/<int:closure_id>/send-report")
@require_auth
@require_permission("ADVANCE_CLOSURES")
def send_report_route(closure_id: int):
    return _run_action(lifecycle.send_report, closure_id)


@closures_bp.post("/<int:closure_id>/send-invoice")
@require_auth
@require_permission("ADVANCE_CLOSURES")
def send_invoice_route(closure_id: int):
    return _run_action(lifecycle.send_invoice, closure_id)


@closures_bp.post("/<int:closure_id>/confirm-payment")
@require_auth
@require_permission("ADVANCE_CLOSURES")
def confirm_payment_route(closure_id: int):
    """Body: {"failure_reason": "..."} records a failed payment check."""
    payload = request.get_json(silent=True) or {}
    reason = payload.get("failure_reason") if isinstance(payload, dict) else None
    return _run_action(lifecycle.confirm_payment, closure_id, failure_reason=reason)
