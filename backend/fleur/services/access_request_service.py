# Overview: Sign-up requests reviewed by managers.

"""
Lifecycle: pending -> approved | rejected. Both outcomes delete the request.

Approval creates, in one transaction, the login identity (role customer or
staff, reusing the bcrypt hash captured at submission) and exactly one
Customer or Employee record carrying the request's contact fields.
Rejection only deletes the request.
"""

from __future__ import annotations

from flask import current_app

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User, UserAccessRequest
from .auth_service import email_registered, hash_password, normalize_email
from .concurrency import lock_for_update, run_with_retry
from .customer_service import build_customer
from .employee_service import build_employee_for
from .identity_service import provision_identity
from .permission_service import is_allowed

REQUESTED_ROLES = {"employee": "staff", "customer": "customer"}


def submit_access_request(
    *,
    full_name: str,
    email: str,
    password: str,
    requested_role: str,
    phone: str | None = None,
    address: str | None = None,
    zalo_name: str | None = None,
) -> UserAccessRequest:
    full_name = (full_name or "").strip()
    email = normalize_email(email)
    requested_role = (requested_role or "").strip().lower()

    if not full_name:
        raise ValidationError("full_name is required")
    if not email:
        raise ValidationError("email is required")
    if requested_role not in REQUESTED_ROLES:
        raise ValidationError(
            f"Invalid requested_role: {requested_role or None}",
            details={"allowed": sorted(REQUESTED_ROLES)},
        )
    if requested_role == "customer" and not (phone and address):
        raise ValidationError("phone and address are required for customer accounts")

    if email_registered(email):
        raise ConflictError("Email already registered", details={"email": email})
    if db.session.query(UserAccessRequest.id).filter_by(email=email).first():
        raise ConflictError("A request for this email is already pending", details={"email": email})

    request_row = UserAccessRequest(
        full_name=full_name,
        email=email,
        phone=(phone or "").strip(),
        address=(address or "").strip(),
        zalo_name=(zalo_name or "").strip(),
        requested_role=requested_role,
        password_hash=hash_password(password),
        status="pending",
    )
    db.session.add(request_row)
    db.session.commit()
    current_app.logger.info("Access request %s submitted for %s", request_row.id, requested_role)
    return request_row


def list_access_requests() -> list[UserAccessRequest]:
    return (
        db.session.query(UserAccessRequest)
        .filter_by(status="pending")
        .order_by(UserAccessRequest.request_date.asc(), UserAccessRequest.id.asc())
        .all()
    )


def _locked_request(request_id: int) -> UserAccessRequest:
    row = lock_for_update(db.session.query(UserAccessRequest).filter_by(id=request_id)).first()
    if row is None:
        raise NotFoundError("Access request not found", details={"request_id": request_id})
    return row


def approve_access_request(request_id: int, actor: User) -> dict:
    """
    Returns {"user": ..., "customer"|"employee": ...} for the created records.
    """
    if not is_allowed(actor, "REVIEW_ACCESS_REQUESTS"):
        raise AuthorizationError("Not allowed to review access requests")

    def _op() -> dict:
        row = _locked_request(request_id)
        user = provision_identity(
            email=row.email,
            display_name=row.full_name,
            role=REQUESTED_ROLES[row.requested_role],
            password_hash=row.password_hash,
        )

        result = {"user": user}
        if row.requested_role == "customer":
            result["customer"] = build_customer(
                user=user,
                patch={
                    "name": row.full_name,
                    "phone": row.phone,
                    "address": row.address or None,
                    "email": row.email,
                    "zalo_name": row.zalo_name or None,
                },
            )
        else:
            result["employee"] = build_employee_for(
                user,
                name=row.full_name,
                phone=row.phone,
                zalo_name=row.zalo_name,
            )

        db.session.delete(row)
        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Access request %s approved by user %s (identity %s)", request_id, actor.id, result["user"].id
    )
    return result


def reject_access_request(request_id: int, actor: User, reason: str | None = None) -> None:
    if not is_allowed(actor, "REVIEW_ACCESS_REQUESTS"):
        raise AuthorizationError("Not allowed to review access requests")

    def _op() -> None:
        row = _locked_request(request_id)
        db.session.delete(row)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info(
        "Access request %s rejected by user %s: %s", request_id, actor.id, (reason or "").strip() or "-"
    )
