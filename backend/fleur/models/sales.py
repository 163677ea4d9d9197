from __future__ import annotations

from ..extensions import db
from fleur.time_utils import to_utc_z


class Invoice(db.Model):
    """
    In-person sale record produced by checkout.

    Lines and totals are immutable after creation. The only later changes are
    voiding (status + audit fields) and append-only returns.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "HD-0001")
    invoice_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Whole VND
    subtotal = db.Column(db.Integer, nullable=False)
    item_discount_total = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(64), nullable=False)
    amount_paid = db.Column(db.Integer, nullable=False, default=0)
    debt_amount = db.Column(db.Integer, nullable=False, default=0)

    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    employee_name = db.Column(db.String(255), nullable=True)

    # COMPLETED | VOIDED
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "customer_id": self.customer_id,
            "subtotal": self.subtotal,
            "item_discount_total": self.item_discount_total,
            "discount": self.discount,
            "total": self.total,
            "payment_method": self.payment_method,
            "amount_paid": self.amount_paid,
            "debt_amount": self.debt_amount,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """Product snapshot as sold."""
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    # No FK: the line must outlive the product
    product_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=False, default="")
    quality = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=False, default="")
    unit = db.Column(db.String(64), nullable=False, default="")
    image = db.Column(db.String(1024), nullable=False, default="")

    unit_price = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False)
    item_discount = db.Column(db.Integer, nullable=False, default=0)
    line_total = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "name": self.name,
            "color": self.color,
            "quality": self.quality,
            "size": self.size,
            "unit": self.unit,
            "image": self.image,
            "unit_price": self.unit_price,
            "cost_price": self.cost_price,
            "quantity": self.quantity,
            "item_discount": self.item_discount,
            "line_total": self.line_total,
            "note": self.note,
        }


class InvoiceReturn(db.Model):
    """
    Goods handed back against an invoice.

    IMMUTABLE: append-only, one row per return event.
    """
    __tablename__ = "invoice_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=True)
    refund_amount = db.Column(db.Integer, nullable=False, default=0)
    # Part of refund_amount that reduced the invoice's unpaid customer debt
    debt_offset = db.Column(db.Integer, nullable=False, default=0)

    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    employee_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("returns", lazy=True, order_by="InvoiceReturn.id"))
    lines = db.relationship("InvoiceReturnLine", backref="invoice_return", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "reason": self.reason,
            "refund_amount": self.refund_amount,
            "debt_offset": self.debt_offset,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class InvoiceReturnLine(db.Model):
    __tablename__ = "invoice_return_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("invoice_returns.id"), nullable=False, index=True)
    invoice_line_id = db.Column(db.Integer, db.ForeignKey("invoice_lines.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "invoice_line_id": self.invoice_line_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "refund_amount": self.refund_amount,
        }
