# Overview: Flask API routes for the dashboard and monthly reports.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..validation import coerce_date, coerce_int
from .errors import json_error
from backoffice.time_utils import today

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/monthly")
@require_auth
@require_permission("VIEW_REPORTS")
def monthly_report_route():
    """
    Query params:
    - month, year: default to the current month
    - months_back: trailing window size (default 6)
    """
    now = today()
    try:
        report = reporting_service.monthly_report(
            coerce_int("month", request.args.get("month", now.month)),
            coerce_int("year", request.args.get("year", now.year)),
            months_back=coerce_int("months_back", request.args.get("months_back", 6)),
        )
    except Exception as exc:
        return json_error(exc, "Failed to build monthly report")
    return jsonify(report)


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_REPORTS")
def dashboard_route():
    try:
        raw = request.args.get("date")
        data = reporting_service.dashboard(coerce_date("date", raw) if raw else None)
    except Exception as exc:
        return json_error(exc, "Failed to build dashboard")
    return jsonify(data)
