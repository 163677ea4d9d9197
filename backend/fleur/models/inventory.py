from __future__ import annotations

from ..extensions import db
from fleur.time_utils import to_utc_z


# Managed vocabularies for product attributes
OPTION_TYPES = ("product_name", "color", "quality", "size", "unit")


class Product(db.Model):
    """
    Sellable stock item.

    quantity is the one piece of shared mutable state with real contention:
    services only change it through guarded conditional UPDATEs, and the
    CHECK constraint backs that up at the data layer.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_name_color", "name", "color"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    color = db.Column(db.String(64), nullable=False, default="")
    quality = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=False, default="")
    unit = db.Column(db.String(64), nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Amounts are whole VND
    price = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Integer, nullable=False, default=0)
    max_discount_per_unit = db.Column(db.Integer, nullable=True)

    image = db.Column(db.String(1024), nullable=False, default="")

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} color={self.color!r} qty={self.quantity}>"

    def snapshot(self) -> dict:
        """Attributes copied onto invoice lines, order items and disposal entries."""
        return {
            "product_id": self.id,
            "name": self.name,
            "color": self.color,
            "quality": self.quality,
            "size": self.size,
            "unit": self.unit,
            "image": self.image,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "quality": self.quality,
            "size": self.size,
            "unit": self.unit,
            "quantity": self.quantity,
            "price": self.price,
            "cost_price": self.cost_price,
            "max_discount_per_unit": self.max_discount_per_unit,
            "image": self.image,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductOption(db.Model):
    """One value of an attribute vocabulary (e.g. color "Đỏ")."""
    __tablename__ = "product_options"
    __table_args__ = (
        db.UniqueConstraint("option_type", "value", name="uq_product_options_type_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    option_type = db.Column(db.String(32), nullable=False, index=True)
    value = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "option_type": self.option_type,
            "value": self.value,
            "created_at": to_utc_z(self.created_at),
        }


class DisposalLogEntry(db.Model):
    """
    Inventory write-off for damaged or expired stock.

    IMMUTABLE: created together with the stock decrement, never updated.
    product_id is kept without a foreign key so the entry survives product deletion.
    """
    __tablename__ = "disposal_log_entries"
    __table_args__ = (
        db.Index("ix_disposal_log_entries_date", "disposal_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=False, default="")
    quality = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(64), nullable=False, default="")
    unit = db.Column(db.String(64), nullable=False, default="")
    image = db.Column(db.String(1024), nullable=False, default="")

    quantity_disposed = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    employee_name = db.Column(db.String(255), nullable=True)

    disposal_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "color": self.color,
            "quality": self.quality,
            "size": self.size,
            "unit": self.unit,
            "image": self.image,
            "quantity_disposed": self.quantity_disposed,
            "reason": self.reason,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "disposal_date": to_utc_z(self.disposal_date),
        }
