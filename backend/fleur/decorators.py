# Overview: Bearer-session and permission guards for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import ServiceUnavailableError
from .services import session_service, permission_service
from .services.identity_service import load_provisioning_credential
from .services.permission_service import PermissionDeniedError


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def _unauthenticated(message: str = "Authentication required"):
    return jsonify({"error": message}), 401


def _client_context() -> dict:
    return {
        "path": request.path,
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def require_auth(f):
    """
    Resolve the bearer token to a live session.

    On success g.current_user and g.session_context are set. Missing header,
    unknown/expired/revoked token and deactivated users all give 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return _unauthenticated()

        context = session_service.validate_session(token)
        if not context:
            return _unauthenticated("Invalid or expired token")

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """403 unless the caller's role grants permission_code. Must sit under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return _unauthenticated()

            try:
                permission_service.require_permission(g.current_user, permission_code, **_client_context())
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": e.message,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_any_permission(*permission_codes):
    """Like require_permission, passing when any one of permission_codes is granted."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return _unauthenticated()

            user = g.current_user
            if any(permission_service.user_has_permission(user, code) for code in permission_codes):
                return f(*args, **kwargs)

            client = _client_context()
            permission_service.log_security_event(
                user_id=user.id,
                event_type="PERMISSION_DENIED",
                success=False,
                resource=client["path"],
                action=",".join(permission_codes),
                reason=f"Missing any of: {', '.join(permission_codes)}",
                ip_address=client["ip_address"],
                user_agent=client["user_agent"],
            )
            return jsonify({
                "error": "Permission denied",
                "required_permissions": list(permission_codes),
            }), 403

        return decorated_function
    return decorator


def require_provisioning(f):
    """
    503 before anything else when the provisioning credential is unusable.

    Goes above @require_auth: a deployment without the credential answers
    every caller the same way, signed in or not.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            load_provisioning_credential()
        except ServiceUnavailableError as e:
            return jsonify(e.to_dict()), e.status_code
        return f(*args, **kwargs)

    return decorated_function
