# Overview: Service-layer operations for customer orders; placement and status changes.

from __future__ import annotations

from flask import current_app

from ..errors import AuthorizationError, BusinessRuleError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Order, OrderHistoryEntry, OrderItem, User
from ..validation import parse_line_items
from fleur.time_utils import utcnow
from .auth_service import actor_name
from .concurrency import increment, lock_for_update, run_with_retry
from .document_service import next_order_number
from .order_status import (
    INITIAL_ORDER_STATUS,
    INITIAL_PAYMENT_STATUS,
    evaluate_payment_transition,
    evaluate_transition,
)
from .permission_service import has_full_access, is_allowed
from .sales_service import price_cart, take_stock

DEFAULT_ORDER_PAYMENT_METHOD = "COD"


def _history(order: Order, *, kind: str, from_status: str | None, to_status: str,
             actor: User | None, reason: str | None, at) -> OrderHistoryEntry:
    entry = OrderHistoryEntry(
        order_id=order.id,
        kind=kind,
        from_status=from_status,
        to_status=to_status,
        actor_user_id=actor.id if actor is not None else None,
        actor_name=actor_name(actor),
        reason=(reason or "").strip() or None,
        occurred_at=at,
    )
    db.session.add(entry)
    return entry


def _contact_for(customer: User, overrides: dict) -> dict:
    record = db.session.query(Customer).filter_by(user_id=customer.id).first()
    contact = {
        "name": record.name if record else customer.display_name,
        "phone": record.phone if record else "",
        "address": (record.address or "") if record else "",
        "zalo_name": record.zalo_name if record else None,
    }
    for key in contact:
        value = overrides.get(key)
        if value is not None and str(value).strip():
            contact[key] = str(value).strip()
    return contact


def place_order(
    *,
    customer: User,
    items: list,
    shipping_fee: int = 0,
    overall_discount: int = 0,
    discount_code: str | None = None,
    payment_method: str | None = None,
    notes: str | None = None,
    contact: dict | None = None,
) -> Order:
    """
    Self-service order: stock is taken at placement, in the same transaction
    that creates the order, its items and the first history entry.

    sub_total = sum(unit_price * quantity); total_amount = sub_total +
    shipping_fee - overall_discount.
    """
    if not is_allowed(customer, "PLACE_ORDER"):
        raise AuthorizationError("Not allowed to place orders")
    parsed = parse_line_items(items)
    for item in parsed:
        # Item discounts are a counter-sale tool
        item["item_discount"] = 0
    if shipping_fee < 0:
        raise ValidationError("shipping_fee must be >= 0")
    if overall_discount < 0:
        raise ValidationError("overall_discount must be >= 0")

    info = _contact_for(customer, contact or {})
    if not info["phone"] or not info["address"]:
        raise ValidationError("Phone and address are required for delivery")

    def _op() -> Order:
        priced = price_cart(parsed)
        sub_total = sum(line["unit_price"] * line["quantity"] for line in priced)
        total_amount = sub_total + shipping_fee - overall_discount
        if total_amount < 0:
            raise BusinessRuleError("overall_discount exceeds the order amount")

        now = utcnow()
        order = Order(
            order_number=next_order_number(),
            customer_user_id=customer.id,
            customer_name=info["name"],
            customer_phone=info["phone"],
            customer_address=info["address"],
            customer_zalo_name=info["zalo_name"],
            sub_total=sub_total,
            shipping_fee=shipping_fee,
            overall_discount=overall_discount,
            discount_code=(discount_code or "").strip() or None,
            total_amount=total_amount,
            payment_method=(payment_method or DEFAULT_ORDER_PAYMENT_METHOD).strip(),
            payment_status=INITIAL_PAYMENT_STATUS,
            order_status=INITIAL_ORDER_STATUS,
            internal_notes=(notes or "").strip() or None,
            order_date=now,
            updated_by_user_id=customer.id,
            updated_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for line in priced:
            snap = line["snapshot"]
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=line["product_id"],
                name=snap["name"],
                color=snap["color"],
                quality=snap["quality"],
                size=snap["size"],
                unit=snap["unit"],
                image=snap["image"],
                unit_price=line["unit_price"],
                quantity=line["quantity"],
                item_discount=0,
                line_total=line["unit_price"] * line["quantity"],
                note=line["note"],
            ))

        take_stock(priced)

        _history(order, kind="ORDER", from_status=None, to_status=INITIAL_ORDER_STATUS,
                 actor=customer, reason="Order placed", at=now)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s placed by user %s: total=%s", order.order_number, customer.id, order.total_amount)
    return order


def get_order(order_id: int, actor: User | None = None) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": order_id})
    if actor is not None and actor.role == "customer" and order.customer_user_id != actor.id:
        # Customers cannot learn about other customers' orders
        raise NotFoundError("Order not found", details={"order_id": order_id})
    return order


def list_orders(
    *,
    actor: User,
    order_status: str | None = None,
    payment_status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = db.session.query(Order)
    if not is_allowed(actor, "VIEW_ORDERS"):
        query = query.filter(Order.customer_user_id == actor.id)
    if order_status:
        query = query.filter(Order.order_status == order_status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)

    total = query.count()
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    orders = query.order_by(Order.order_date.desc(), Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total


def _restock(order: Order) -> None:
    for item in order.items:
        if not increment(item.product_id, item.quantity):
            current_app.logger.warning(
                "Cancel %s: product %s no longer exists, %s units not restocked",
                order.order_number, item.product_id, item.quantity,
            )


def transition_order_status(order_id: int, requested: str, actor: User, reason: str | None = None) -> Order:
    """
    Apply one order status change and append exactly one history entry.

    Rejections leave status and history untouched. A concurrent writer on the
    same order surfaces as StaleDataError and the whole step is retried
    against the fresh status.
    """
    privileged = has_full_access(actor)

    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        if not privileged and not is_allowed(actor, "REQUEST_ORDER_CANCELLATION", order):
            raise AuthorizationError(
                "Not allowed to change this order",
                details={"order_id": order_id},
            )

        transition = evaluate_transition(order.order_status, requested, privileged)
        now = utcnow()

        order.order_status = transition.to_status
        order.updated_by_user_id = actor.id
        order.updated_at = now
        if transition.to_status == "SHIPPING":
            order.ship_date = now
        elif transition.to_status == "COMPLETED":
            order.completion_date = now
        if transition.to_status in ("CANCELLATION_REQUESTED", "CANCELLED") and reason:
            order.cancellation_reason = reason.strip()
        if transition.restocks:
            _restock(order)

        _history(order, kind="ORDER", from_status=transition.from_status,
                 to_status=transition.to_status, actor=actor, reason=reason, at=now)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s status -> %s by user %s", order.order_number, order.order_status, actor.id
    )
    return order


def transition_payment_status(order_id: int, requested: str, actor: User, reason: str | None = None) -> Order:
    """Forward-only payment status change by a full-access actor."""
    privileged = has_full_access(actor)

    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})

        transition = evaluate_payment_transition(order.payment_status, requested, privileged)
        now = utcnow()

        order.payment_status = transition.to_status
        order.updated_by_user_id = actor.id
        order.updated_at = now

        _history(order, kind="PAYMENT", from_status=transition.from_status,
                 to_status=transition.to_status, actor=actor, reason=reason, at=now)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s payment -> %s by user %s", order.order_number, order.payment_status, actor.id
    )
    return order


def update_internal_notes(order_id: int, notes: str | None, actor: User) -> Order:
    if not has_full_access(actor):
        raise AuthorizationError("Only managers can edit internal notes")

    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        order.internal_notes = (notes or "").strip() or None
        order.updated_by_user_id = actor.id
        order.updated_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_history(order_id: int, actor: User | None = None) -> list[OrderHistoryEntry]:
    order = get_order(order_id, actor)
    return list(order.history)
