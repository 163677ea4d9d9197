# Overview: JSON error responses shared by the route modules.

from flask import current_app, g, jsonify, request

from .errors import AuthorizationError, FleurError
from .services import permission_service


def error_response(exc: FleurError):
    """
    Domain error -> (json, status). Authorization denials that reach a
    route are also written to the security event log.
    """
    if isinstance(exc, AuthorizationError) and hasattr(g, "current_user"):
        current_app.logger.warning(
            "Denied %s %s for user %s: %s", request.method, request.path, g.current_user.id, exc.message
        )
        permission_service.log_security_event(
            user_id=g.current_user.id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=exc.message,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
    elif exc.status_code >= 500:
        current_app.logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(what: str):
    current_app.logger.exception("Failed to %s", what)
    return jsonify({"error": "Internal server error"}), 500
