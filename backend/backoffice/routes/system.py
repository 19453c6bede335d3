"""
System health endpoint.

Each check runs a couple of cheap queries and reports its latency; counts
that matter when deploying (users, active companies, pending closures, live
sessions) ride along as details. Public, no token required.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..delivery import get_dispatcher
from ..extensions import db
from ..models import Closure, ClosureStatus, Company, SessionToken, User
from backoffice.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _timed_check(name: str, probe) -> dict:
    """Run probe() -> details dict; never raises."""
    started = time.perf_counter()
    try:
        details = probe()
    except SQLAlchemyError:
        current_app.logger.exception("%s health check failed", name)
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": f"{name} error",
        }
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": details,
    }


def check_database_health() -> dict:
    return _timed_check("Database", lambda: {
        "users": db.session.query(User).count(),
        "active_companies": db.session.query(Company).filter(Company.is_active.is_(True)).count(),
        "pending_closures": db.session.query(Closure).filter_by(
            status=ClosureStatus.PENDING.value
        ).count(),
    })


def check_session_service_health() -> dict:
    return _timed_check("Session service", lambda: {
        "active_sessions": db.session.query(SessionToken).filter(
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= utcnow(),
        ).count(),
    })


@system_bp.get("/health")
def health():
    """200 when every check is healthy, 503 otherwise."""
    started = time.perf_counter()
    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "delivery_backend": get_dispatcher().name,
        "checks": checks,
    }, 200 if healthy else 503
