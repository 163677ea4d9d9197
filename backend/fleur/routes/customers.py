# Overview: Flask API routes for customer contact records.

from flask import Blueprint, request, jsonify

from ..errors import FleurError
from ..models import Customer
from ..services import customer_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
)
from ..decorators import require_auth, require_permission
from ..responses import error_response, internal_error

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "email", "zalo_name"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers_route():
    customers = customer_service.list_customers(request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": customer_service.get_customer(customer_id).to_dict()}), 200
    except FleurError as e:
        return error_response(e)


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
        customer = customer_service.create_customer(patch=patch)
        return jsonify({"customer": customer.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("create customer")


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
        return jsonify({"customer": customer.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("update customer")
