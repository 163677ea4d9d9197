# Overview: Flask API routes for checkout, invoices, voids and returns.

"""
Invoice routes.

SECURITY:
- Checkout requires CREATE_INVOICE
- Reading invoices requires VIEW_INVOICES
- Voids and returns require VOID_INVOICE / RETURN_INVOICE_ITEMS
"""

from flask import Blueprint, request, jsonify, g

from ..errors import FleurError, ValidationError
from ..services import sales_service
from ..time_utils import parse_iso_datetime
from ..validation import coerce_int
from ..decorators import require_auth, require_permission
from ..responses import error_response, internal_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/invoices")


def _optional_int(data: dict, key: str):
    value = data.get(key)
    if value is None or value == "":
        return None
    return coerce_int(key, value)


def _date_arg(name: str):
    try:
        return parse_iso_datetime(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_INVOICE")
def checkout_route():
    """
    Body:
    {
      "customer_name": "Chị Lan",
      "items": [{"product_id": 1, "quantity": 2, "item_discount": 5000, "note": "..."}],
      "discount": 0,
      "payment_method": "Tiền mặt",
      "amount_paid": 100000,
      "customer_id": null
    }

    amount_paid defaults to the invoice total. A shortfall becomes a CUSTOMER debt.
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.checkout(
            customer_name=data.get("customer_name"),
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            amount_paid=_optional_int(data, "amount_paid"),
            discount=_optional_int(data, "discount") or 0,
            actor=g.current_user,
            customer_id=_optional_int(data, "customer_id"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("check out")


@sales_bp.get("")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    """
    Query params: status, customer, from, to (ISO-8601), limit, offset.
    """
    try:
        invoices, total = sales_service.list_invoices(
            status=(request.args.get("status") or "").upper() or None,
            customer_name=request.args.get("customer"),
            from_date=_date_arg("from"),
            to_date=_date_arg("to"),
            limit=min(request.args.get("limit", 100, type=int), 500),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({
            "items": [inv.to_dict(include_lines=False) for inv in invoices],
            "total": total,
        }), 200
    except FleurError as e:
        return error_response(e)


@sales_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    try:
        invoice = sales_service.get_invoice(invoice_id)
        data = invoice.to_dict()
        data["returns"] = [r.to_dict() for r in invoice.returns]
        return jsonify({"invoice": data}), 200
    except FleurError as e:
        return error_response(e)


@sales_bp.post("/<int:invoice_id>/void")
@require_auth
@require_permission("VOID_INVOICE")
def void_invoice_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        invoice = sales_service.void_invoice(invoice_id, g.current_user, data.get("reason"))
        return jsonify({"invoice": invoice.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("void invoice")


@sales_bp.post("/<int:invoice_id>/returns")
@require_auth
@require_permission("RETURN_INVOICE_ITEMS")
def return_items_route(invoice_id: int):
    """Body: {items: [{product_id, quantity}], reason?}"""
    data = request.get_json(silent=True) or {}
    try:
        ret = sales_service.return_invoice_items(
            invoice_id, data.get("items"), g.current_user, data.get("reason")
        )
        return jsonify({"return": ret.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("return invoice items")
