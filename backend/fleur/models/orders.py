from __future__ import annotations

from ..extensions import db
from fleur.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer self-service order.

    order_status and payment_status move through the rules in
    services/order_status.py; every accepted move appends an
    OrderHistoryEntry. version_id turns concurrent writers into
    StaleDataError instead of silent last-write-wins.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_date", "order_status", "order_date"),
        db.Index("ix_orders_customer_date", "customer_user_id", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "DH-0001")
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False, default="")
    customer_address = db.Column(db.String(512), nullable=False, default="")
    customer_zalo_name = db.Column(db.String(255), nullable=True)

    # Whole VND
    sub_total = db.Column(db.Integer, nullable=False)
    shipping_fee = db.Column(db.Integer, nullable=False, default=0)
    overall_discount = db.Column(db.Integer, nullable=False, default=0)
    discount_code = db.Column(db.String(64), nullable=True)
    total_amount = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(64), nullable=False)
    payment_status = db.Column(db.String(32), nullable=False, default="UNPAID", index=True)
    order_status = db.Column(db.String(32), nullable=False, default="PENDING_CONFIRMATION")

    internal_notes = db.Column(db.Text, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    ship_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completion_date = db.Column(db.DateTime(timezone=True), nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")
    history = db.relationship(
        "OrderHistoryEntry",
        backref="order",
        lazy=True,
        order_by="OrderHistoryEntry.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True, include_history: bool = False) -> dict:
        from fleur.services.order_status import ORDER_STATUS_LABELS, PAYMENT_STATUS_LABELS

        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_user_id": self.customer_user_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "customer_zalo_name": self.customer_zalo_name,
            "sub_total": self.sub_total,
            "shipping_fee": self.shipping_fee,
            "overall_discount": self.overall_discount,
            "discount_code": self.discount_code,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "payment_status_label": PAYMENT_STATUS_LABELS.get(self.payment_status),
            "order_status": self.order_status,
            "order_status_label": ORDER_STATUS_LABELS.get(self.order_status),
            "internal_notes": self.internal_notes,
            "cancellation_reason": self.cancellation_reason,
            "order_date": to_utc_z(self.order_date),
            "ship_date": to_utc_z(self.ship_date) if self.ship_date else None,
            "completion_date": to_utc_z(self.completion_date) if self.completion_date else None,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_history:
            data["history"] = [entry.to_dict() for entry in self.history]
        return data


class OrderItem(db.Model):
    """Product snapshot with the price at order time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=False, default="")
    quality = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=False, default="")
    unit = db.Column(db.String(64), nullable=False, default="")
    image = db.Column(db.String(1024), nullable=False, default="")

    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    item_discount = db.Column(db.Integer, nullable=False, default=0)
    line_total = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name": self.name,
            "color": self.color,
            "quality": self.quality,
            "size": self.size,
            "unit": self.unit,
            "image": self.image,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "item_discount": self.item_discount,
            "line_total": self.line_total,
            "note": self.note,
        }


class OrderHistoryEntry(db.Model):
    """
    One accepted order or payment status change.

    IMMUTABLE: never updated or deleted.
    """
    __tablename__ = "order_history_entries"
    __table_args__ = (
        db.Index("ix_order_history_order_occurred", "order_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)

    # ORDER | PAYMENT
    kind = db.Column(db.String(16), nullable=False, default="ORDER")
    from_status = db.Column(db.String(32), nullable=True)
    to_status = db.Column(db.String(32), nullable=False)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    actor_name = db.Column(db.String(255), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "kind": self.kind,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_user_id": self.actor_user_id,
            "actor_name": self.actor_name,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
