# Overview: Employee records and account provisioning.

from __future__ import annotations

from flask import current_app

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Employee, User
from ..models.people import EMPLOYEE_POSITIONS
from .auth_service import email_registered, normalize_email, validate_password_strength
from .identity_service import load_provisioning_credential, provision_identity

POSITION_ALIASES = {
    "NHÂN VIÊN": "STAFF",
    "QUẢN LÝ": "MANAGER",
}

POSITION_ROLES = {
    "STAFF": "staff",
    "MANAGER": "manager",
    "ADMIN": "admin",
}


def normalize_position(position: str | None) -> str:
    value = (position or "").strip().upper()
    value = POSITION_ALIASES.get(value, value)
    if value not in EMPLOYEE_POSITIONS:
        raise ValidationError(f"Invalid position: {position}", details={"allowed": list(EMPLOYEE_POSITIONS)})
    return value


def create_employee(
    *,
    caller: User,
    email: str,
    password: str,
    name: str,
    position: str,
    phone: str | None = None,
    zalo_name: str | None = None,
) -> Employee:
    """
    Provision a login identity plus its Employee record.

    Check order: credential (503), caller role equals ADMIN_ROLE (403),
    required fields (400), password length (400), email free (409).
    """
    load_provisioning_credential()

    if caller is None or caller.role != current_app.config.get("ADMIN_ROLE", "admin"):
        raise AuthorizationError("Forbidden: Not an admin")

    missing = [
        key for key, value in (("email", email), ("password", password), ("name", name), ("position", position))
        if not value or not str(value).strip()
    ]
    if missing:
        raise ValidationError("Missing required fields", details={"fields": missing})

    validate_password_strength(password)
    position = normalize_position(position)
    if email_registered(email):
        raise ConflictError("Email already registered", details={"email": normalize_email(email)})

    user = provision_identity(
        email=email,
        display_name=name.strip(),
        role=POSITION_ROLES[position],
        password=password,
    )
    employee = Employee(
        user_id=user.id,
        name=name.strip(),
        email=user.email,
        position=position,
        phone=(phone or "").strip() or None,
        zalo_name=(zalo_name or "").strip() or None,
    )
    db.session.add(employee)
    db.session.commit()

    current_app.logger.info("Employee %s (%s) created by user %s", employee.id, position, caller.id)
    return employee


def build_employee_for(user: User, *, name: str, phone: str | None, zalo_name: str | None,
                       position: str = "STAFF") -> Employee:
    """Employee record for an already created identity (access request approval)."""
    employee = Employee(
        user_id=user.id,
        name=name,
        email=user.email,
        position=normalize_position(position),
        phone=(phone or "").strip() or None,
        zalo_name=(zalo_name or "").strip() or None,
    )
    db.session.add(employee)
    return employee


def list_employees() -> list[Employee]:
    return db.session.query(Employee).order_by(Employee.name.asc(), Employee.id.asc()).all()


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found", details={"employee_id": employee_id})
    return employee
