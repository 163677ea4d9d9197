"""
Sales Service: counter checkout, invoice voiding and returns.

Creating the invoice and taking the stock are one transaction. Every
product is decremented with a guarded UPDATE; if any guard fails the whole
transaction rolls back.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import (
    AuthorizationError,
    BusinessRuleError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, Debt, Invoice, InvoiceLine, InvoiceReturn, InvoiceReturnLine, Product, User
from ..validation import parse_line_items
from fleur.time_utils import utcnow
from .auth_service import actor_name
from .concurrency import guarded_decrement, increment, lock_for_update, run_with_retry
from .document_service import next_invoice_number
from .permission_service import is_allowed

DEFAULT_PAYMENT_METHOD = "Tiền mặt"


@dataclass
class InvoiceTotals:
    subtotal: int
    item_discount_total: int
    discount: int
    total: int
    line_totals: list[int] = field(default_factory=list)


def compute_invoice_totals(lines: list[dict], overall_discount: int = 0) -> InvoiceTotals:
    """
    total = sum(unit_price * quantity) - sum(item_discount) - overall_discount

    Each line: unit_price, quantity, item_discount (optional) and
    max_discount_per_unit (optional). An item discount is capped at
    max_discount_per_unit * quantity when the cap is set and > 0.
    """
    if not lines:
        raise ValidationError("Cart is empty")
    overall_discount = overall_discount or 0
    if overall_discount < 0:
        raise ValidationError("discount must be >= 0")

    subtotal = 0
    item_discount_total = 0
    line_totals = []
    for line in lines:
        quantity = line["quantity"]
        unit_price = line["unit_price"]
        item_discount = line.get("item_discount") or 0
        if quantity < 1:
            raise ValidationError("quantity must be >= 1")
        if item_discount < 0:
            raise ValidationError("item_discount must be >= 0")

        cap = line.get("max_discount_per_unit") or 0
        if cap > 0 and item_discount > cap * quantity:
            raise BusinessRuleError(
                "Item discount exceeds the allowed maximum",
                details={
                    "product_id": line.get("product_id"),
                    "item_discount": item_discount,
                    "max_allowed": cap * quantity,
                },
            )

        gross = unit_price * quantity
        subtotal += gross
        item_discount_total += item_discount
        line_totals.append(gross - item_discount)

    total = subtotal - item_discount_total - overall_discount
    if total < 0:
        raise BusinessRuleError(
            "Discounts exceed the invoice amount",
            details={"subtotal": subtotal, "item_discount_total": item_discount_total, "discount": overall_discount},
        )

    return InvoiceTotals(
        subtotal=subtotal,
        item_discount_total=item_discount_total,
        discount=overall_discount,
        total=total,
        line_totals=line_totals,
    )


def price_cart(items: list[dict]) -> list[dict]:
    """
    Attach product snapshots and current prices to parsed cart items.

    Checks every line against the known stock before anything is written and
    reports all short products at once.
    """
    requested: dict[int, int] = {}
    for item in items:
        requested[item["product_id"]] = requested.get(item["product_id"], 0) + item["quantity"]

    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(list(requested))).all()
    }
    missing = [pid for pid in requested if pid not in products]
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})

    short = [
        {
            "product_id": pid,
            "name": products[pid].name,
            "requested": qty,
            "available": products[pid].quantity,
        }
        for pid, qty in requested.items()
        if qty > products[pid].quantity
    ]
    if short:
        raise InsufficientStockError(short)

    priced = []
    for item in items:
        product = products[item["product_id"]]
        priced.append({
            **item,
            "snapshot": product.snapshot(),
            "unit_price": product.price,
            "cost_price": product.cost_price,
            "max_discount_per_unit": product.max_discount_per_unit,
        })
    return priced


def take_stock(priced: list[dict]) -> None:
    """Guarded decrement per product; raises InsufficientStockError on the first failed guard."""
    per_product: dict[int, int] = {}
    names: dict[int, str] = {}
    for line in priced:
        pid = line["product_id"]
        per_product[pid] = per_product.get(pid, 0) + line["quantity"]
        names[pid] = line["snapshot"]["name"]

    for pid in sorted(per_product):
        if not guarded_decrement(pid, per_product[pid]):
            raise InsufficientStockError([{
                "product_id": pid,
                "name": names[pid],
                "requested": per_product[pid],
            }])


def checkout(
    *,
    customer_name: str,
    items: list,
    payment_method: str | None = None,
    amount_paid: int | None = None,
    discount: int = 0,
    actor: User | None = None,
    customer_id: int | None = None,
) -> Invoice:
    """
    Create an invoice and take its stock in one transaction.

    amount_paid defaults to the invoice total. debt_amount =
    max(0, total - amount_paid); a CUSTOMER debt linked to the invoice is
    created in the same transaction when it is positive.
    """
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise ValidationError("Customer name is required")
    parsed = parse_line_items(items)
    if amount_paid is not None and amount_paid < 0:
        raise ValidationError("amount_paid must be >= 0")
    payment_method = (payment_method or DEFAULT_PAYMENT_METHOD).strip()

    def _op() -> Invoice:
        if customer_id is not None and db.session.get(Customer, customer_id) is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})
        priced = price_cart(parsed)
        totals = compute_invoice_totals(priced, discount)

        paid = totals.total if amount_paid is None else amount_paid
        debt_amount = max(0, totals.total - paid)
        now = utcnow()

        invoice = Invoice(
            invoice_number=next_invoice_number(),
            customer_name=customer_name,
            customer_id=customer_id,
            subtotal=totals.subtotal,
            item_discount_total=totals.item_discount_total,
            discount=totals.discount,
            total=totals.total,
            payment_method=payment_method,
            amount_paid=paid,
            debt_amount=debt_amount,
            employee_id=actor.id if actor is not None else None,
            employee_name=actor_name(actor),
            status="COMPLETED",
            created_at=now,
        )
        db.session.add(invoice)
        db.session.flush()

        for line, line_total in zip(priced, totals.line_totals):
            snap = line["snapshot"]
            db.session.add(InvoiceLine(
                invoice_id=invoice.id,
                product_id=line["product_id"],
                name=snap["name"],
                color=snap["color"],
                quality=snap["quality"],
                size=snap["size"],
                unit=snap["unit"],
                image=snap["image"],
                unit_price=line["unit_price"],
                cost_price=line["cost_price"],
                quantity=line["quantity"],
                item_discount=line["item_discount"],
                line_total=line_total,
                note=line["note"],
            ))

        take_stock(priced)

        if debt_amount > 0:
            db.session.add(Debt(
                debt_type="CUSTOMER",
                counterparty=customer_name,
                amount=debt_amount,
                status="UNPAID",
                invoice_id=invoice.id,
                note=f"Invoice {invoice.invoice_number}",
                created_by_user_id=invoice.employee_id,
                created_by_name=invoice.employee_name,
                created_at=now,
            ))

        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Invoice %s created: total=%s paid=%s debt=%s",
        invoice.invoice_number, invoice.total, invoice.amount_paid, invoice.debt_amount,
    )
    return invoice


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(
    *,
    status: str | None = None,
    customer_name: str | None = None,
    from_date=None,
    to_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Invoice], int]:
    query = db.session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == status)
    if customer_name:
        query = query.filter(Invoice.customer_name.ilike(f"%{customer_name.strip()}%"))
    if from_date:
        query = query.filter(Invoice.created_at >= from_date)
    if to_date:
        query = query.filter(Invoice.created_at <= to_date)

    total = query.count()
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).offset(offset).limit(limit).all()
    return invoices, total


def _returned_by_line(invoice_id: int) -> dict[int, int]:
    rows = (
        db.session.query(InvoiceReturnLine.invoice_line_id, db.func.sum(InvoiceReturnLine.quantity))
        .join(InvoiceReturn, InvoiceReturn.id == InvoiceReturnLine.return_id)
        .filter(InvoiceReturn.invoice_id == invoice_id)
        .group_by(InvoiceReturnLine.invoice_line_id)
        .all()
    )
    return {line_id: int(qty or 0) for line_id, qty in rows}


def void_invoice(invoice_id: int, actor: User, reason: str | None = None) -> Invoice:
    """
    Void an invoice: restock every quantity not already returned, mark it
    VOIDED and settle its unpaid customer debt. An invoice is voided once.
    """
    if not is_allowed(actor, "VOID_INVOICE"):
        raise AuthorizationError("Only managers can void invoices")

    def _op() -> Invoice:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
        if invoice.status == "VOIDED":
            raise BusinessRuleError("Invoice already voided", details={"invoice_id": invoice_id})

        returned = _returned_by_line(invoice.id)
        for line in invoice.lines:
            remaining = line.quantity - returned.get(line.id, 0)
            if remaining <= 0:
                continue
            if not increment(line.product_id, remaining):
                current_app.logger.warning(
                    "Void %s: product %s no longer exists, %s units not restocked",
                    invoice.invoice_number, line.product_id, remaining,
                )

        now = utcnow()
        invoice.status = "VOIDED"
        invoice.voided_by_user_id = actor.id
        invoice.voided_at = now
        invoice.void_reason = (reason or "").strip() or None

        debts = db.session.query(Debt).filter_by(invoice_id=invoice.id, debt_type="CUSTOMER", status="UNPAID").all()
        for debt in debts:
            debt.status = "PAID"
            debt.last_updated_by_user_id = actor.id
            debt.last_updated_by_name = actor_name(actor)
            debt.updated_at = now

        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Invoice %s voided by user %s", invoice.invoice_number, actor.id)
    return invoice


def _offset_customer_debt(invoice: Invoice, refund: int, actor: User) -> int:
    """
    Apply a refund to the invoice's unpaid CUSTOMER debts before any cash
    goes back. A debt the refund fully covers is marked PAID; a partly
    covered one is reduced. Returns the amount offset.
    """
    left = refund
    debts = (
        lock_for_update(db.session.query(Debt).filter_by(invoice_id=invoice.id, debt_type="CUSTOMER", status="UNPAID"))
        .order_by(Debt.id.asc())
        .all()
    )
    for debt in debts:
        if left <= 0:
            break
        if left >= debt.amount:
            left -= debt.amount
            debt.status = "PAID"
        else:
            debt.amount -= left
            left = 0
        debt.last_updated_by_user_id = actor.id
        debt.last_updated_by_name = actor_name(actor)
        debt.updated_at = utcnow()
    return refund - left


def return_invoice_items(invoice_id: int, items: list, actor: User, reason: str | None = None) -> InvoiceReturn:
    """
    Take goods back against an invoice and restock them.

    items: [{product_id, quantity}], quantity <= sold - already returned for
    that product. Returned quantities are allocated to the invoice lines of
    the product in line order.
    The refund first pays down the invoice's unpaid customer debt.
    """
    if not is_allowed(actor, "RETURN_INVOICE_ITEMS"):
        raise AuthorizationError("Not allowed to return invoice items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    requested: dict[int, int] = {}
    for raw in parse_line_items(items):
        requested[raw["product_id"]] = requested.get(raw["product_id"], 0) + raw["quantity"]

    def _op() -> InvoiceReturn:
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
        if invoice.status == "VOIDED":
            raise BusinessRuleError("Cannot return items on a voided invoice")

        returned = _returned_by_line(invoice.id)
        record = InvoiceReturn(
            invoice_id=invoice.id,
            reason=(reason or "").strip() or None,
            employee_id=actor.id,
            employee_name=actor_name(actor),
            created_at=utcnow(),
        )
        db.session.add(record)
        db.session.flush()

        refund_total = 0
        for product_id, quantity in requested.items():
            lines = [line for line in invoice.lines if line.product_id == product_id]
            available = sum(line.quantity - returned.get(line.id, 0) for line in lines)
            if not lines or quantity > available:
                raise BusinessRuleError(
                    "Return quantity exceeds quantity sold",
                    details={"product_id": product_id, "requested": quantity, "returnable": available},
                )

            left = quantity
            for line in lines:
                if left == 0:
                    break
                take = min(left, line.quantity - returned.get(line.id, 0))
                if take <= 0:
                    continue
                refund = line.line_total * take // line.quantity
                db.session.add(InvoiceReturnLine(
                    return_id=record.id,
                    invoice_line_id=line.id,
                    product_id=product_id,
                    quantity=take,
                    refund_amount=refund,
                ))
                refund_total += refund
                left -= take

            if not increment(product_id, quantity):
                current_app.logger.warning(
                    "Return on %s: product %s no longer exists, not restocked",
                    invoice.invoice_number, product_id,
                )

        record.refund_amount = refund_total
        record.debt_offset = _offset_customer_debt(invoice, refund_total, actor)
        db.session.commit()
        return record

    record = run_with_retry(_op)
    current_app.logger.info("Return %s recorded on invoice %s", record.id, invoice_id)
    return record
