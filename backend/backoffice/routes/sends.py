# Overview: Flask API routes for document-send tracking.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import document_send_service
from ..validation import ValidationError, coerce_int
from .errors import json_error
from backoffice.time_utils import today

sends_bp = Blueprint("sends", __name__, url_prefix="/api/sends")


@sends_bp.get("")
@require_auth
@require_permission("VIEW_SENDS")
def list_sends_route():
    """
    One group per closure of the month.

    Query params:
    - month, year: default to the current month
    - status: pending | sent | error, keeps groups with at least one such send
    """
    now = today()
    try:
        month = coerce_int("month", request.args.get("month", now.month))
        year = coerce_int("year", request.args.get("year", now.year))
        groups = document_send_service.grouped_sends(month, year, status=request.args.get("status"))
    except Exception as exc:
        return json_error(exc, "Failed to list document sends")
    return jsonify({
        "month": month,
        "year": year,
        "items": groups,
        "stats": document_send_service.send_stats(groups),
    })


@sends_bp.post("/<int:send_id>/resend")
@require_auth
@require_permission("MANAGE_SENDS")
def resend_route(send_id: int):
    """Always 200 when the send exists; a failed delivery is reported in the body."""
    try:
        send = document_send_service.resend(send_id)
    except Exception as exc:
        return json_error(exc, "Failed to resend document")
    return jsonify(send.to_dict())


@sends_bp.post("/<int:send_id>/mark-sent")
@require_auth
@require_permission("MANAGE_SENDS")
def mark_sent_route(send_id: int):
    try:
        send = document_send_service.mark_sent(send_id)
    except Exception as exc:
        return json_error(exc, "Failed to mark document as sent")
    return jsonify(send.to_dict())


@sends_bp.put("/<int:send_id>/notes")
@require_auth
@require_permission("MANAGE_SENDS")
def notes_route(send_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        send = document_send_service.add_note(send_id, payload.get("notes"))
    except Exception as exc:
        return json_error(exc, "Failed to save notes")
    return jsonify(send.to_dict())
