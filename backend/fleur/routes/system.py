# Overview: Flask API routes for health, version and security event review.

"""
System health and version endpoints.

/health checks the database, the session table and the employee
provisioning credential; /version reports non-sensitive deployment info.
"""

import sys
import time

from flask import Blueprint, current_app, jsonify, request

from ..errors import ServiceUnavailableError
from ..extensions import db
from ..models import Product, SessionToken, User
from ..services import permission_service
from ..services.identity_service import load_provisioning_credential
from ..decorators import require_auth, require_permission
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)

APP_VERSION = "0.1.0"


def _elapsed_ms(start: float) -> float:
    return round((time.time() - start) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "users": db.session.query(User).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {"active_sessions": active, "expired_pending_cleanup": expired},
        }
    except Exception:
        current_app.logger.exception("Session service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Session service error"}


def check_provisioning_health() -> dict:
    """A missing credential only disables employee creation."""
    try:
        credential = load_provisioning_credential()
        return {"status": "healthy", "details": {"project_id": credential.project_id}}
    except ServiceUnavailableError as e:
        return {"status": "degraded", "warning": e.message}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: a dependency is unhealthy
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "provisioning": check_provisioning_health(),
    }

    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": APP_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }


@system_bp.get("/api/security-events")
@require_auth
@require_permission("VIEW_SECURITY_EVENTS")
def security_events():
    limit = min(request.args.get("limit", 100, type=int), 1000)
    events = permission_service.list_security_events(limit)
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events)}), 200
