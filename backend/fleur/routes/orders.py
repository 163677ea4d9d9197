# Overview: Flask API routes for storefront orders and their status lifecycle.

"""
Order routes.

Customers place orders and see only their own; they may request
cancellation or withdraw that request. Managers (MANAGE_ORDERS) drive the
rest of the lifecycle. Transition rules live in services/order_status.py.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import FleurError
from ..services import order_service
from ..services.order_status import (
    ORDER_STATUSES,
    ORDER_STATUS_LABELS,
    PAYMENT_STATUSES,
    PAYMENT_STATUS_LABELS,
    normalize_order_status,
    normalize_payment_status,
)
from ..validation import coerce_int
from ..decorators import require_auth, require_permission, require_any_permission
from ..responses import error_response, internal_error


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("/statuses")
def list_statuses_route():
    """Status codes with their display labels (public)."""
    return jsonify({
        "order_statuses": [{"code": s, "label": ORDER_STATUS_LABELS[s]} for s in ORDER_STATUSES],
        "payment_statuses": [{"code": s, "label": PAYMENT_STATUS_LABELS[s]} for s in PAYMENT_STATUSES],
    }), 200


@orders_bp.post("")
@require_auth
@require_permission("PLACE_ORDER")
def place_order_route():
    """
    Body:
    {
      "items": [{"product_id": 1, "quantity": 2}],
      "shipping_fee": 30000,
      "overall_discount": 0,
      "discount_code": null,
      "payment_method": "COD",
      "notes": "...",
      "contact": {"name": ..., "phone": ..., "address": ..., "zalo_name": ...}
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.place_order(
            customer=g.current_user,
            items=data.get("items"),
            shipping_fee=coerce_int("shipping_fee", data.get("shipping_fee") or 0),
            overall_discount=coerce_int("overall_discount", data.get("overall_discount") or 0),
            discount_code=data.get("discount_code"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            contact=data.get("contact") if isinstance(data.get("contact"), dict) else None,
        )
        return jsonify({"order": order.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("place order")


@orders_bp.get("")
@require_auth
@require_any_permission("VIEW_ORDERS", "VIEW_OWN_ORDERS")
def list_orders_route():
    try:
        order_status = request.args.get("status")
        payment_status = request.args.get("payment_status")
        orders, total = order_service.list_orders(
            actor=g.current_user,
            order_status=normalize_order_status(order_status) if order_status else None,
            payment_status=normalize_payment_status(payment_status) if payment_status else None,
            limit=min(request.args.get("limit", 100, type=int), 500),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({"items": [o.to_dict(include_items=False) for o in orders], "total": total}), 200
    except FleurError as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>")
@require_auth
@require_any_permission("VIEW_ORDERS", "VIEW_OWN_ORDERS")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user)
        return jsonify({"order": order.to_dict(include_history=True)}), 200
    except FleurError as e:
        return error_response(e)


@orders_bp.get("/<int:order_id>/history")
@require_auth
@require_any_permission("VIEW_ORDERS", "VIEW_OWN_ORDERS")
def order_history_route(order_id: int):
    try:
        entries = order_service.get_history(order_id, g.current_user)
        return jsonify({"items": [e.to_dict() for e in entries]}), 200
    except FleurError as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/status")
@require_auth
@require_any_permission("MANAGE_ORDERS", "REQUEST_ORDER_CANCELLATION")
def order_status_route(order_id: int):
    """Body: {status: code or label, reason?}"""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.transition_order_status(
            order_id, data.get("status"), g.current_user, data.get("reason")
        )
        return jsonify({"order": order.to_dict(include_history=True)}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("change order status")


@orders_bp.post("/<int:order_id>/payment-status")
@require_auth
@require_permission("MANAGE_ORDERS")
def payment_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.transition_payment_status(
            order_id, data.get("status"), g.current_user, data.get("reason")
        )
        return jsonify({"order": order.to_dict(include_history=True)}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("change payment status")


@orders_bp.patch("/<int:order_id>/notes")
@require_auth
@require_permission("MANAGE_ORDERS")
def order_notes_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_internal_notes(order_id, data.get("internal_notes"), g.current_user)
        return jsonify({"order": order.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("update order notes")
