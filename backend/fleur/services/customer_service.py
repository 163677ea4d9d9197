# Overview: Customer contact records.

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, User
from .concurrency import run_with_retry

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "address", "email", "zalo_name"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            continue
        setattr(c, k, v)


def build_customer(*, patch: dict, user: User | None = None) -> Customer:
    """Customer in the current transaction (not committed)."""
    customer = Customer(user_id=user.id if user is not None else None)
    apply_customer_patch(customer, patch)
    if customer.phone is None:
        customer.phone = ""
    db.session.add(customer)
    return customer


def create_customer(*, patch: dict) -> Customer:
    def _op() -> Customer:
        customer = build_customer(patch=patch)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def get_customer_for_user(user_id: int) -> Customer | None:
    return db.session.query(Customer).filter_by(user_id=user_id).first()


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op() -> Customer:
        customer = get_customer(customer_id)
        apply_customer_patch(customer, patch)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()
