# Overview: Service-layer operations for session tokens.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2)
- Revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from fleur.time_utils import utcnow


@dataclass
class SessionContext:
    """Authenticated user plus the session record it came from."""
    user: User
    session: SessionToken


def _timeout(key: str, default: int) -> timedelta:
    hours = default
    if has_app_context():
        hours = int(current_app.config.get(key, default))
    return timedelta(hours=hours)


def absolute_timeout() -> timedelta:
    return _timeout("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)


def idle_timeout() -> timedelta:
    return _timeout("SESSION_IDLE_TIMEOUT_HOURS", 2)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest of a token; only the digest is stored.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown, expired, revoked, idle for too long,
    or belongs to a deactivated user. Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > idle_timeout():
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns True if session was revoked, False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke all active sessions for a user. Returns count of sessions revoked."""
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        _revoke(session, reason)

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete expired and revoked sessions older than the cutoff.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
