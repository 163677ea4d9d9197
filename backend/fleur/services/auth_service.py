# Overview: Service-layer operations for auth; password hashing and login identities.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum length from MIN_PASSWORD_LENGTH (default 6)
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import bcrypt
from flask import current_app, has_app_context

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from fleur.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def _min_password_length() -> int:
    if has_app_context():
        return int(current_app.config.get("MIN_PASSWORD_LENGTH", 6))
    return 6


def validate_password_strength(password: str | None) -> None:
    minimum = _min_password_length()
    if not password or len(password) < minimum:
        raise PasswordValidationError(f"Password must be at least {minimum} characters long")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor BCRYPT_ROUNDS, default 12).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash. Empty or malformed hashes never match.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def actor_name(user: User | None) -> str | None:
    """Name recorded on documents: the employee name when there is one."""
    if user is None:
        return None
    employee = getattr(user, "employee", None)
    if employee is not None:
        return employee.name
    return user.display_name


def email_registered(email: str) -> bool:
    return db.session.query(User.id).filter_by(email=normalize_email(email)).first() is not None


def build_user(
    *,
    email: str,
    display_name: str,
    role: str,
    password: str | None = None,
    password_hash: str | None = None,
) -> User:
    """
    Create a User in the current transaction (flushed, not committed).

    Either a plaintext password (validated and hashed here) or an existing
    bcrypt hash (from an access request) must be given.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role: {role}")
    if email_registered(email):
        raise ConflictError("Email already registered", details={"email": email})

    if password_hash is None:
        password_hash = hash_password(password)

    user = User(
        email=email,
        display_name=(display_name or email).strip(),
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def create_user(email: str, password: str, role: str = "staff", display_name: str | None = None) -> User:
    """Create and commit a login identity (CLI and seeding)."""
    user = build_user(email=email, display_name=display_name or email, role=role, password=password)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
