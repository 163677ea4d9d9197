# Overview: Flask API routes for products, option vocabularies, stock receipts and disposals.

"""
Inventory routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY
- Product writes require MANAGE_PRODUCTS, option writes MANAGE_OPTIONS
- Receiving stock requires RECEIVE_STOCK, disposals DISPOSE_STOCK
"""
from flask import Blueprint, request, jsonify, g

from ..errors import FleurError
from ..models import Product
from ..services import debt_service, inventory_service, taxonomy_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
)
from ..decorators import require_auth, require_permission
from ..responses import error_response, internal_error

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "color", "quality", "size", "unit", "quantity",
        "price", "cost_price", "max_discount_per_unit", "image",
    },
    required_on_create={"name", "price", "cost_price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products_route():
    """
    Query params:
    - search: substring of name, color, size or quality
    - in_stock: true to hide products with zero quantity
    """
    products = inventory_service.list_products(
        search=request.args.get("search"),
        in_stock_only=_flag(request.args.get("in_stock")),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return jsonify({"product": inventory_service.get_product(product_id).to_dict()}), 200
    except FleurError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = inventory_service.create_product(patch=patch)
        return jsonify({"product": product.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("create product")


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        existing = inventory_service.get_product(product_id)
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch, existing)
        product = inventory_service.update_product(product_id=product_id, patch=patch)
        return jsonify({"product": product.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    try:
        inventory_service.delete_product(product_id=product_id)
        return jsonify({"deleted": product_id}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("delete product")


# -- Stock receipts (imports on credit) --

@products_bp.post("/receive")
@require_auth
@require_permission("RECEIVE_STOCK")
def receive_stock_route():
    """
    Body: {supplier, items: [{product_id, quantity, unit_cost}], note?}
    Creates a SUPPLIER debt of sum(quantity * unit_cost).
    """
    data = request.get_json(silent=True) or {}
    try:
        result = debt_service.receive_stock(
            supplier=data.get("supplier"),
            items=data.get("items"),
            actor=g.current_user,
            note=data.get("note"),
        )
        return jsonify(result), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("receive stock")


# -- Disposals --

@products_bp.post("/<int:product_id>/dispose")
@require_auth
@require_permission("DISPOSE_STOCK")
def dispose_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        entry = inventory_service.dispose_stock(
            product_id=product_id,
            quantity=coerce_int("quantity", data.get("quantity")),
            reason=data.get("reason"),
            actor=g.current_user,
        )
        return jsonify({"disposal": entry.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("dispose stock")


@products_bp.get("/disposals")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_disposals_route():
    entries = inventory_service.list_disposals(product_id=request.args.get("product_id", type=int))
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


# -- Option vocabularies --

@products_bp.get("/options")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_options_route():
    try:
        return jsonify({"options": taxonomy_service.list_options(request.args.get("type"))}), 200
    except FleurError as e:
        return error_response(e)


@products_bp.post("/options/<option_type>")
@require_auth
@require_permission("MANAGE_OPTIONS")
def add_option_route(option_type: str):
    data = request.get_json(silent=True) or {}
    try:
        option = taxonomy_service.add_option(option_type, data.get("value"))
        return jsonify({"option": option.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("add option")


@products_bp.get("/options/<option_type>/usage")
@require_auth
@require_permission("VIEW_INVENTORY")
def option_usage_route(option_type: str):
    value = request.args.get("value", "")
    try:
        return jsonify({
            "option_type": option_type,
            "value": value,
            "products": taxonomy_service.option_usage(option_type, value),
        }), 200
    except FleurError as e:
        return error_response(e)


@products_bp.delete("/options/<option_type>")
@require_auth
@require_permission("MANAGE_OPTIONS")
def delete_option_route(option_type: str):
    """Value comes from ?value= or the JSON body."""
    data = request.get_json(silent=True) or {}
    value = request.args.get("value") or data.get("value")
    try:
        result = taxonomy_service.delete_option(option_type, value)
        return jsonify(result), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("delete option")
