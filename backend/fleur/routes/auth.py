# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes.

Accounts are created by approval of an access request (see
routes/access_requests.py) or by an admin (POST /api/employees).
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.customer_service import get_customer_for_user
from ..decorators import require_auth
from ..responses import internal_error


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _profile(user) -> dict:
    data = user.to_dict()
    data["permissions"] = sorted(permission_service.get_user_permissions(user))
    data["full_access"] = permission_service.has_full_access(user)
    employee = getattr(user, "employee", None)
    data["employee"] = employee.to_dict() if employee is not None else None
    customer = get_customer_for_user(user.id)
    data["customer"] = customer.to_dict() if customer is not None else None
    return data


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason="Invalid credentials",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return jsonify({
            "user": _profile(user),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except Exception:
        return internal_error("log in")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[1].strip()
    session_service.revoke_session(token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": _profile(g.current_user)}), 200
