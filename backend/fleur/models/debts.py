from __future__ import annotations

from ..extensions import db
from fleur.time_utils import to_utc_z


class Debt(db.Model):
    """
    Amount owed to a supplier (stock received on credit) or by a customer
    (invoice underpayment). After creation only the paid/unpaid flag changes,
    plus the amount when goods are returned against the linked invoice.
    """
    __tablename__ = "debts"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_debts_amount_positive"),
        db.Index("ix_debts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # SUPPLIER | CUSTOMER
    debt_type = db.Column(db.String(16), nullable=False, index=True)
    counterparty = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    # UNPAID | PAID
    status = db.Column(db.String(16), nullable=False, default="UNPAID")

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by_name = db.Column(db.String(255), nullable=True)
    last_updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    last_updated_by_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    invoice = db.relationship("Invoice", backref=db.backref("debts", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debt_type": self.debt_type,
            "counterparty": self.counterparty,
            "amount": self.amount,
            "status": self.status,
            "invoice_id": self.invoice_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "last_updated_by_user_id": self.last_updated_by_user_id,
            "last_updated_by_name": self.last_updated_by_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
