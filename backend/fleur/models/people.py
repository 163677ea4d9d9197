from __future__ import annotations

from ..extensions import db
from fleur.time_utils import to_utc_z


EMPLOYEE_POSITIONS = ("STAFF", "MANAGER", "ADMIN")


class Customer(db.Model):
    """Customer contact record. user_id is set when the customer can log in."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False, default="")
    address = db.Column(db.String(512), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    zalo_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "zalo_name": self.zalo_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Employee(db.Model):
    """Staff record; always backed by a login identity."""
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    # STAFF | MANAGER | ADMIN
    position = db.Column(db.String(16), nullable=False, default="STAFF")
    phone = db.Column(db.String(32), nullable=True)
    zalo_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("employee", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "position": self.position,
            "phone": self.phone,
            "zalo_name": self.zalo_name,
            "created_at": to_utc_z(self.created_at),
        }


class UserAccessRequest(db.Model):
    """
    Pending sign-up awaiting review.

    Approval and rejection both delete the row; approval first creates the
    login identity and the Customer or Employee record. The password is only
    ever held as a bcrypt hash.
    """
    __tablename__ = "user_access_requests"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    phone = db.Column(db.String(32), nullable=False, default="")
    address = db.Column(db.String(512), nullable=False, default="")
    zalo_name = db.Column(db.String(255), nullable=False, default="")

    # employee | customer
    requested_role = db.Column(db.String(16), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")

    request_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "zalo_name": self.zalo_name,
            "requested_role": self.requested_role,
            "status": self.status,
            "request_date": to_utc_z(self.request_date),
        }
