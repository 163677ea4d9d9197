# Overview: Service-layer operations for permission checks and security event logging.

"""
Authorization policy and security event logging.

is_allowed() is the single decision point for routes and services.

- Deny unless the role table grants the code
- Only denials are logged
"""

from __future__ import annotations

from ..errors import AuthorizationError
from ..extensions import db
from ..models import SecurityEvent, User
from ..permissions import DEFAULT_ROLE_PERMISSIONS, FULL_ACCESS_PERMISSION
from fleur.time_utils import utcnow


class PermissionDeniedError(AuthorizationError):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def get_user_permissions(user: User | None) -> set[str]:
    """Permission codes granted by the user's role. Inactive users get none."""
    if user is None or not user.is_active:
        return set()
    return set(DEFAULT_ROLE_PERMISSIONS.get(user.role, ()))


def user_has_permission(user: User | None, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user)


def has_full_access(user: User | None) -> bool:
    """Managers and admins: may set any order or payment status."""
    return user_has_permission(user, FULL_ACCESS_PERMISSION)


def _owner_id(resource) -> int | None:
    for attr in ("customer_user_id", "user_id"):
        if hasattr(resource, attr):
            return getattr(resource, attr)
    return None


def is_allowed(actor: User | None, action: str, resource=None) -> bool:
    """
    Single policy decision: may `actor` perform `action` on `resource`?

    - The actor's role must grant `action`.
    - Customers may only act on resources they own (orders, their customer
      record). Staff roles are bound by their permissions alone.
    """
    if not user_has_permission(actor, action):
        return False
    if resource is None or actor.role != "customer":
        return True
    owner_id = _owner_id(resource)
    if owner_id is None:
        return True
    return owner_id == actor.id


def require_permission(
    actor: User | None,
    permission_code: str,
    resource=None,
    *,
    path: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require actor to be allowed, raise PermissionDeniedError if not.

    Denials are written to security_events.
    """
    if is_allowed(actor, permission_code, resource):
        return

    log_security_event(
        user_id=actor.id if actor is not None else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=path,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(
        f"Permission denied: {permission_code}",
        details={"required_permission": permission_code},
    )


def list_security_events(limit: int = 100) -> list[SecurityEvent]:
    return (
        db.session.query(SecurityEvent)
        .order_by(SecurityEvent.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
