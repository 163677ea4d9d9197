# Overview: Order and payment status rules. Pure functions; no database access.

"""
Order Status State Machine

================================================================================
ORDER STATUS
================================================================================

    PENDING_CONFIRMATION -> CONFIRMED -> PREPARING -> SHIPPING -> DELIVERED -> COMPLETED

    CANCELLATION_REQUESTED: side branch, reachable only from a state before
                            DELIVERED
    CANCELLED:              terminal

RULES:
1. Customers may request CANCELLATION_REQUESTED (from a pre-delivered state)
   or re-affirm PENDING_CONFIRMATION (from PENDING_CONFIRMATION or
   CANCELLATION_REQUESTED). Nothing else.
2. Full-access actors (managers, admins) may set any status, including
   resolving a cancellation request either way, but nobody leaves CANCELLED.
3. Setting the current status again is rejected, except re-affirming
   PENDING_CONFIRMATION.

================================================================================
PAYMENT STATUS
================================================================================

    UNPAID -> PARTIALLY_PAID -> PAID -> REFUNDED

Forward-only (steps may be skipped), REFUNDED is terminal, full-access
actors only.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import AuthorizationError, ConflictError, ValidationError


ORDER_STATUSES = (
    "PENDING_CONFIRMATION",
    "CONFIRMED",
    "PREPARING",
    "SHIPPING",
    "DELIVERED",
    "COMPLETED",
    "CANCELLATION_REQUESTED",
    "CANCELLED",
)

PAYMENT_STATUSES = ("UNPAID", "PARTIALLY_PAID", "PAID", "REFUNDED")

ORDER_STATUS_LABELS = {
    "PENDING_CONFIRMATION": "Chờ xác nhận",
    "CONFIRMED": "Đã xác nhận",
    "PREPARING": "Đang chuẩn bị",
    "SHIPPING": "Đang giao hàng",
    "DELIVERED": "Đã giao hàng",
    "COMPLETED": "Hoàn thành",
    "CANCELLATION_REQUESTED": "Yêu cầu hủy",
    "CANCELLED": "Đã hủy",
}

PAYMENT_STATUS_LABELS = {
    "UNPAID": "Chưa thanh toán",
    "PARTIALLY_PAID": "Thanh toán một phần",
    "PAID": "Đã thanh toán",
    "REFUNDED": "Đã hoàn tiền",
}

# States from which a cancellation may still be requested
PRE_DELIVERED = {"PENDING_CONFIRMATION", "CONFIRMED", "PREPARING", "SHIPPING"}

INITIAL_ORDER_STATUS = "PENDING_CONFIRMATION"
INITIAL_PAYMENT_STATUS = "UNPAID"


class OrderTransitionError(ConflictError):
    """
    Raised when a requested status change breaks the state machine.

    Domain error (409), distinct from AuthorizationError (403).
    """
    pass


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str

    @property
    def restocks(self) -> bool:
        """Cancelling returns the order's items to stock."""
        return self.to_status == "CANCELLED" and self.from_status != "CANCELLED"


def _normalize(value: str | None, statuses: tuple, labels: dict, kind: str) -> str:
    if value is None:
        raise ValidationError(f"{kind} is required")
    candidate = str(value).strip()
    upper = candidate.upper()
    if upper in statuses:
        return upper
    for code, label in labels.items():
        if label == candidate:
            return code
    raise ValidationError(
        f"Invalid {kind} '{candidate}'",
        details={"allowed": list(statuses)},
    )


def normalize_order_status(value: str | None) -> str:
    """Accepts a status code or its Vietnamese label."""
    return _normalize(value, ORDER_STATUSES, ORDER_STATUS_LABELS, "order status")


def normalize_payment_status(value: str | None) -> str:
    return _normalize(value, PAYMENT_STATUSES, PAYMENT_STATUS_LABELS, "payment status")


def evaluate_transition(current: str, requested: str, actor_is_privileged: bool) -> Transition:
    """
    Decide an order status change.

    Returns the accepted Transition or raises AuthorizationError (actor may
    not request this status) / OrderTransitionError (not reachable from the
    current status).
    """
    current = normalize_order_status(current)
    requested = normalize_order_status(requested)

    if not actor_is_privileged and requested not in ("CANCELLATION_REQUESTED", INITIAL_ORDER_STATUS):
        raise AuthorizationError(
            "Customers may only request cancellation",
            details={"requested": requested},
        )

    if current == "CANCELLED":
        raise OrderTransitionError(
            "Cancelled orders cannot change status",
            details={"current": current, "requested": requested},
        )

    if requested == current and requested != INITIAL_ORDER_STATUS:
        raise OrderTransitionError(
            f"Order is already {ORDER_STATUS_LABELS[current]}",
            details={"current": current, "requested": requested},
        )

    if requested == "CANCELLATION_REQUESTED" and current not in PRE_DELIVERED:
        raise OrderTransitionError(
            "Cancellation can only be requested before delivery",
            details={"current": current, "requested": requested},
        )

    if (
        not actor_is_privileged
        and requested == INITIAL_ORDER_STATUS
        and current not in (INITIAL_ORDER_STATUS, "CANCELLATION_REQUESTED")
    ):
        raise OrderTransitionError(
            "Order can no longer return to pending confirmation",
            details={"current": current, "requested": requested},
        )

    return Transition(from_status=current, to_status=requested)


def evaluate_payment_transition(current: str, requested: str, actor_is_privileged: bool) -> Transition:
    current = normalize_payment_status(current)
    requested = normalize_payment_status(requested)

    if not actor_is_privileged:
        raise AuthorizationError("Only managers can change payment status")

    if current == "REFUNDED":
        raise OrderTransitionError(
            "Refunded payments cannot change status",
            details={"current": current, "requested": requested},
        )

    if PAYMENT_STATUSES.index(requested) <= PAYMENT_STATUSES.index(current):
        raise OrderTransitionError(
            "Payment status can only move forward",
            details={"current": current, "requested": requested},
        )

    return Transition(from_status=current, to_status=requested)
