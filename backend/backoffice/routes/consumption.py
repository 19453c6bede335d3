# Overview: Flask API routes for consumption records; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import company_service, consumption_service, settings_service
from ..services.pricing_service import compute_order_total
from ..validation import ValidationError, coerce_date, coerce_int
from .errors import json_error
from backoffice.time_utils import today

consumption_bp = Blueprint("consumption", __name__, url_prefix="/api/consumption")


def _date_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    return coerce_date(name, raw)


@consumption_bp.get("")
@require_auth
@require_permission("VIEW_CONSUMPTION")
def list_consumption_route():
    """
    Query params:
    - date: YYYY-MM-DD (defaults to today unless a range is given)
    - start / end: YYYY-MM-DD, end exclusive
    - company_id: int
    """
    try:
        start = _date_arg("start")
        end = _date_arg("end")
        consumed_on = _date_arg("date")
        if consumed_on is None and start is None and end is None:
            consumed_on = today()
        records = consumption_service.list_records(
            consumed_on=consumed_on,
            company_id=request.args.get("company_id", type=int),
            start=start,
            end=end,
        )
    except Exception as exc:
        return json_error(exc, "Failed to list consumption records")
    return jsonify({
        "items": [r.to_dict() for r in records],
        "count": len(records),
    })


@consumption_bp.get("/stats")
@require_auth
@require_permission("VIEW_CONSUMPTION")
def consumption_stats_route():
    try:
        consumed_on = _date_arg("date") or today()
        records = consumption_service.list_records(consumed_on=consumed_on)
    except Exception as exc:
        return json_error(exc, "Failed to compute consumption stats")
    return jsonify({"date": consumed_on.isoformat(), **consumption_service.summarize_records(records)})


@consumption_bp.post("/preview")
@require_auth
@require_permission("RECORD_CONSUMPTION")
def preview_route():
    """Live price for the order form. Nothing is stored."""
    payload = request.get_json(silent=True) or {}
    try:
        company = company_service.get_company(coerce_int("company_id", payload.get("company_id")))
        total = compute_order_total(
            payload.get("size"),
            coerce_int("quantity", payload.get("quantity")),
            payload.get("extra_items"),
            company.discount_percent,
            settings_service.get_price_table(),
        )
    except Exception as exc:
        return json_error(exc, "Failed to price order")
    return jsonify(total.to_dict())


@consumption_bp.post("")
@require_auth
@require_permission("RECORD_CONSUMPTION")
def create_consumption_route():
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        consumed_on = payload.get("consumed_on")
        record = consumption_service.create_record(
            company_id=coerce_int("company_id", payload.get("company_id")),
            consumed_on=coerce_date("consumed_on", consumed_on) if consumed_on else None,
            size=payload.get("size"),
            quantity=coerce_int("quantity", payload.get("quantity")),
            extra_items=payload.get("extra_items"),
            notes=payload.get("notes"),
            user_id=g.current_user.id,
        )
    except Exception as exc:
        return json_error(exc, "Failed to create consumption record")
    return jsonify(record.to_dict()), 201


@consumption_bp.delete("/<int:record_id>")
@require_auth
@require_permission("DELETE_CONSUMPTION")
def delete_consumption_route(record_id: int):
    try:
        consumption_service.delete_record(record_id)
    except Exception as exc:
        return json_error(exc, "Failed to delete consumption record")
    return jsonify({"ok": True})
