# Overview: Flask API routes for sign-up access requests and their review.

from flask import Blueprint, request, jsonify, g

from ..errors import FleurError
from ..services import access_request_service
from ..decorators import require_auth, require_permission
from ..responses import error_response, internal_error


access_requests_bp = Blueprint("access_requests", __name__, url_prefix="/api/access-requests")


@access_requests_bp.post("")
def submit_request_route():
    """
    Public sign-up.

    Body: {full_name, email, password, requested_role: "customer"|"employee",
           phone, address, zalo_name}
    """
    data = request.get_json(silent=True) or {}
    try:
        row = access_request_service.submit_access_request(
            full_name=data.get("full_name"),
            email=data.get("email"),
            password=data.get("password"),
            requested_role=data.get("requested_role"),
            phone=data.get("phone"),
            address=data.get("address"),
            zalo_name=data.get("zalo_name"),
        )
        return jsonify({"request": row.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("submit access request")


@access_requests_bp.get("")
@require_auth
@require_permission("REVIEW_ACCESS_REQUESTS")
def list_requests_route():
    rows = access_request_service.list_access_requests()
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200


@access_requests_bp.post("/<int:request_id>/approve")
@require_auth
@require_permission("REVIEW_ACCESS_REQUESTS")
def approve_request_route(request_id: int):
    try:
        result = access_request_service.approve_access_request(request_id, g.current_user)
        return jsonify({key: value.to_dict() for key, value in result.items()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("approve access request")


@access_requests_bp.post("/<int:request_id>/reject")
@require_auth
@require_permission("REVIEW_ACCESS_REQUESTS")
def reject_request_route(request_id: int):
    data = request.get_json(silent=True) or {}
    try:
        access_request_service.reject_access_request(request_id, g.current_user, data.get("reason"))
        return jsonify({"rejected": request_id}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("reject access request")
