# Overview: Flask API routes for customer and supplier debts.

from flask import Blueprint, request, jsonify, g

from ..errors import FleurError
from ..services import debt_service
from ..validation import coerce_int
from ..decorators import require_auth, require_permission
from ..responses import error_response, internal_error


debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("")
@require_auth
@require_permission("VIEW_DEBTS")
def list_debts_route():
    """
    Query params: status (UNPAID|PAID), type (CUSTOMER|SUPPLIER), year, month, day.
    Date parts are matched independently against the creation date.
    """
    try:
        debts = debt_service.list_debts(
            status=request.args.get("status"),
            debt_type=request.args.get("type"),
            year=request.args.get("year", type=int),
            month=request.args.get("month", type=int),
            day=request.args.get("day", type=int),
        )
        return jsonify({
            "items": [d.to_dict() for d in debts],
            "count": len(debts),
            "total_amount": sum(d.amount for d in debts),
        }), 200
    except FleurError as e:
        return error_response(e)


@debts_bp.get("/outstanding")
@require_auth
@require_permission("VIEW_DEBTS")
def outstanding_route():
    try:
        debt_type = request.args.get("type")
        return jsonify({
            "type": (debt_type or "").upper() or None,
            "outstanding": debt_service.outstanding_total(debt_type),
        }), 200
    except FleurError as e:
        return error_response(e)


@debts_bp.post("")
@require_auth
@require_permission("MANAGE_DEBTS")
def create_debt_route():
    """Body: {debt_type, counterparty, amount, invoice_id?, note?}"""
    data = request.get_json(silent=True) or {}
    try:
        invoice_id = data.get("invoice_id")
        debt = debt_service.create_debt(
            debt_type=data.get("debt_type"),
            counterparty=data.get("counterparty"),
            amount=coerce_int("amount", data.get("amount")),
            actor=g.current_user,
            invoice_id=coerce_int("invoice_id", invoice_id) if invoice_id is not None else None,
            note=data.get("note"),
        )
        return jsonify({"debt": debt.to_dict()}), 201
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("create debt")


@debts_bp.get("/<int:debt_id>")
@require_auth
@require_permission("VIEW_DEBTS")
def get_debt_route(debt_id: int):
    try:
        return jsonify({"debt": debt_service.get_debt(debt_id).to_dict()}), 200
    except FleurError as e:
        return error_response(e)


@debts_bp.post("/<int:debt_id>/status")
@require_auth
@require_permission("MANAGE_DEBTS")
def set_debt_status_route(debt_id: int):
    data = request.get_json(silent=True) or {}
    try:
        debt = debt_service.set_debt_status(debt_id, data.get("status"), g.current_user)
        return jsonify({"debt": debt.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("update debt")


@debts_bp.post("/<int:debt_id>/toggle")
@require_auth
@require_permission("MANAGE_DEBTS")
def toggle_debt_route(debt_id: int):
    try:
        debt = debt_service.toggle_debt_status(debt_id, g.current_user)
        return jsonify({"debt": debt.to_dict()}), 200
    except FleurError as e:
        return error_response(e)
    except Exception:
        return internal_error("toggle debt")
