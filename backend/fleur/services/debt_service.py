# Overview: Debt ledger; supplier debts from stock receipts and customer debts from underpaid invoices.

"""
A debt is a single amount with a paid/unpaid flag. Settling means flipping
the flag, and every flip records who made it. The only partial settlement is
a return against the linked invoice, which lowers the amount (sales_service).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, update

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Debt, Product, User
from ..validation import parse_line_items
from fleur.time_utils import check_date_parts, utcnow
from .auth_service import actor_name
from .concurrency import increment, lock_for_update, run_with_retry

DEBT_TYPES = ("SUPPLIER", "CUSTOMER")
DEBT_STATUSES = ("UNPAID", "PAID")


def _require(value: str | None, allowed: tuple, kind: str) -> str:
    value = (value or "").strip().upper()
    if value not in allowed:
        raise ValidationError(f"Invalid {kind}: {value or None}", details={"allowed": list(allowed)})
    return value


def _build_debt(*, debt_type: str, counterparty: str, amount: int, actor: User | None,
                invoice_id: int | None = None, note: str | None = None) -> Debt:
    debt_type = _require(debt_type, DEBT_TYPES, "debt type")
    counterparty = (counterparty or "").strip()
    if not counterparty:
        raise ValidationError("counterparty is required")
    if amount is None or amount <= 0:
        raise ValidationError("amount must be > 0")

    debt = Debt(
        debt_type=debt_type,
        counterparty=counterparty,
        amount=amount,
        status="UNPAID",
        invoice_id=invoice_id,
        note=note,
        created_by_user_id=actor.id if actor is not None else None,
        created_by_name=actor_name(actor),
        created_at=utcnow(),
    )
    db.session.add(debt)
    return debt


def create_debt(
    *,
    debt_type: str,
    counterparty: str,
    amount: int,
    actor: User | None,
    invoice_id: int | None = None,
    note: str | None = None,
) -> Debt:
    debt = _build_debt(
        debt_type=debt_type,
        counterparty=counterparty,
        amount=amount,
        actor=actor,
        invoice_id=invoice_id,
        note=note,
    )
    db.session.commit()
    return debt


def get_debt(debt_id: int) -> Debt:
    debt = db.session.get(Debt, debt_id)
    if debt is None:
        raise NotFoundError("Debt not found", details={"debt_id": debt_id})
    return debt


def set_debt_status(debt_id: int, status: str, actor: User | None) -> Debt:
    """Set PAID or UNPAID explicitly, recording the last updater."""
    status = _require(status, DEBT_STATUSES, "debt status")

    def _op() -> Debt:
        debt = lock_for_update(db.session.query(Debt).filter_by(id=debt_id)).first()
        if debt is None:
            raise NotFoundError("Debt not found", details={"debt_id": debt_id})
        debt.status = status
        debt.last_updated_by_user_id = actor.id if actor is not None else None
        debt.last_updated_by_name = actor_name(actor)
        debt.updated_at = utcnow()
        db.session.commit()
        return debt

    debt = run_with_retry(_op)
    current_app.logger.info("Debt %s -> %s", debt.id, debt.status)
    return debt


def toggle_debt_status(debt_id: int, actor: User | None) -> Debt:
    """
    PAID <-> UNPAID as one UPDATE, so concurrent toggles each flip the
    status the previous one left.
    """
    def _op() -> Debt:
        stmt = (
            update(Debt)
            .where(Debt.id == debt_id)
            .values(
                status=case((Debt.status == "PAID", "UNPAID"), else_="PAID"),
                last_updated_by_user_id=actor.id if actor is not None else None,
                last_updated_by_name=actor_name(actor),
                updated_at=utcnow(),
                version_id=Debt.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if not db.session.execute(stmt).rowcount:
            raise NotFoundError("Debt not found", details={"debt_id": debt_id})
        db.session.commit()
        return get_debt(debt_id)

    debt = run_with_retry(_op)
    current_app.logger.info("Debt %s toggled -> %s", debt.id, debt.status)
    return debt


def _filtered(status=None, debt_type=None, year=None, month=None, day=None):
    query = db.session.query(Debt)
    if status:
        query = query.filter(Debt.status == _require(status, DEBT_STATUSES, "debt status"))
    if debt_type:
        query = query.filter(Debt.debt_type == _require(debt_type, DEBT_TYPES, "debt type"))
    try:
        check_date_parts(month, day)
    except ValueError as e:
        raise ValidationError(str(e))
    if year is not None:
        query = query.filter(db.extract("year", Debt.created_at) == year)
    if month is not None:
        query = query.filter(db.extract("month", Debt.created_at) == month)
    if day is not None:
        query = query.filter(db.extract("day", Debt.created_at) == day)
    return query


def list_debts(
    *,
    status: str | None = None,
    debt_type: str | None = None,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
) -> list[Debt]:
    """Newest first. Date parts filter on the creation date independently."""
    query = _filtered(status, debt_type, year, month, day)
    return query.order_by(Debt.created_at.desc(), Debt.id.desc()).all()


def outstanding_total(debt_type: str | None = None) -> int:
    query = db.session.query(db.func.coalesce(db.func.sum(Debt.amount), 0)).filter(Debt.status == "UNPAID")
    if debt_type:
        query = query.filter(Debt.debt_type == _require(debt_type, DEBT_TYPES, "debt type"))
    return int(query.scalar() or 0)


def receive_stock(*, supplier: str, items: list, actor: User | None, note: str | None = None) -> dict:
    """
    Import stock from a supplier on credit.

    Each item: product_id, quantity > 0, unit_cost >= 0. Stock increments and
    the SUPPLIER debt of sum(quantity * unit_cost) commit together. A zero
    total creates no debt.
    """
    supplier = (supplier or "").strip()
    if not supplier:
        raise ValidationError("supplier is required")
    parsed = parse_line_items(items, require_cost=True)

    def _op() -> dict:
        ids = {item["product_id"] for item in parsed}
        found = {pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(ids)).all()}
        missing = sorted(ids - found)
        if missing:
            raise NotFoundError("Product not found", details={"product_ids": missing})

        total_cost = 0
        for item in parsed:
            increment(item["product_id"], item["quantity"])
            total_cost += item["quantity"] * item["unit_cost"]

        debt = None
        if total_cost > 0:
            debt = _build_debt(
                debt_type="SUPPLIER",
                counterparty=supplier,
                amount=total_cost,
                actor=actor,
                note=note or f"Stock import ({len(parsed)} lines)",
            )

        db.session.commit()
        return {
            "supplier": supplier,
            "total_cost": total_cost,
            "items": [
                {"product_id": i["product_id"], "quantity": i["quantity"], "unit_cost": i["unit_cost"]}
                for i in parsed
            ],
            "debt": debt.to_dict() if debt is not None else None,
        }

    result = run_with_retry(_op)
    current_app.logger.info("Received stock from %s: total_cost=%s", supplier, result["total_cost"])
    return result
