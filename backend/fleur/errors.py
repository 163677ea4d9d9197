# Overview: Domain exception taxonomy shared by services and routes.

"""
Every domain error carries the HTTP status it maps to and an optional
details dict. Routes catch FleurError and answer with to_dict(); anything
else is logged and answered with a generic 500.

- ValidationError:        400, rejected before any write
- AuthorizationError:     403, actor may not perform the mutation
- NotFoundError:          404
- ConflictError:          409, duplicate or in-use record
- InsufficientStockError: 409, requested quantity exceeds stock
- BusinessRuleError:      422, discount cap, totals, transition rules
- PersistenceError:       503, store failure after retries (retryable)
- ServiceUnavailableError:503, deployment defect (missing credential)
"""

from __future__ import annotations


class FleurError(Exception):
    """Base exception for all application errors."""
    status_code = 500
    retryable = False

    def __init__(self, message: str = "An internal error occurred", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        rv = {"error": self.message}
        if self.details:
            rv["details"] = self.details
        if self.retryable:
            rv["retryable"] = True
        return rv


class ValidationError(FleurError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthorizationError(FleurError):
    """Raised when an actor lacks permission for a mutation."""
    status_code = 403


class NotFoundError(FleurError):
    status_code = 404

    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, details)


class ConflictError(FleurError, ValueError):
    """409-level business rule conflict (e.g., duplicate option value)."""
    status_code = 409


class InsufficientStockError(FleurError):
    """Raised when a sale, order or disposal asks for more than is on hand."""
    status_code = 409

    def __init__(self, items: list[dict]):
        names = ", ".join(str(item.get("name") or item.get("product_id")) for item in items)
        super().__init__(f"Insufficient stock for: {names}", details={"items": items})
        self.items = items


class BusinessRuleError(FleurError):
    status_code = 422


class PersistenceError(FleurError):
    """Store failure that survived the retry budget. Safe for the client to retry."""
    status_code = 503
    retryable = True


class ServiceUnavailableError(FleurError):
    """Deployment defect such as missing provisioning credentials."""
    status_code = 503
