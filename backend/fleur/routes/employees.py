# Overview: Flask API routes for employee records and admin-only employee provisioning.

"""
Employee routes.

POST /api/employees is the privileged provisioning endpoint: the provisioning
credential is checked first, then the caller's bearer session, then the
caller's role must equal the configured admin role. Status codes:
- 201 {"uid": <new identity id>, "employee": {...}}
- 503 identity provisioning credential missing or invalid
- 400 missing fields / weak password / unknown position
- 401 missing or expired session
- 403 caller is not an admin
- 409 email already registered
- 500 anything else
"""

from flask import Blueprint, request, jsonify, g

from ..errors import FleurError
from ..services import employee_service
from ..decorators import require_auth, require_permission, require_provisioning
from ..responses import error_response, internal_error


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.post("")
@require_provisioning
@require_auth
def create_employee_route():
    data = request.get_json(silent=True) or {}
    try:
        employee = employee_service.create_employee(
            caller=g.current_user,
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            position=data.get("position"),
            phone=data.get("phone"),
            zalo_name=data.get("zaloName") or data.get("zalo_name"),
        )
        return jsonify({"uid": employee.user_id, "employee": employee.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("create employee")


@employees_bp.get("")
@require_auth
@require_permission("VIEW_EMPLOYEES")
def list_employees_route():
    employees = employee_service.list_employees()
    return jsonify({"items": [e.to_dict() for e in employees], "count": len(employees)}), 200


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_permission("VIEW_EMPLOYEES")
def get_employee_route(employee_id: int):
    try:
        return jsonify({"employee": employee_service.get_employee(employee_id).to_dict()}), 200
    except FleurError as e:
        return error_response(e)
