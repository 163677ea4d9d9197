# Overview: Service-layer helpers for concurrency; retry, locking and guarded stock updates.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import FleurError, PersistenceError
from ..extensions import db
from ..models import Product


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("PERSISTENCE_RETRY_ATTEMPTS", 3))
    return 3


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, timeouts) and StaleDataError
    (optimistic locking conflicts). When the budget is spent the failure is
    reported as PersistenceError, which callers treat as retryable.

    Domain errors raised by func roll the session back and propagate
    unchanged, so a rejected operation never leaves partial writes pending.
    """
    if attempts is None:
        attempts = _default_attempts()

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except FleurError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if has_app_context():
                current_app.logger.warning(
                    "Persistence attempt %s/%s failed: %s", attempt + 1, attempts, exc
                )
            if attempt < attempts - 1:
                time.sleep(backoff_base * (2 ** attempt))

    raise PersistenceError(
        "The store did not accept the change; please retry",
        details={"cause": type(last_exc).__name__ if last_exc else None},
    ) from last_exc


def guarded_decrement(product_id: int, quantity: int) -> bool:
    """
    UPDATE products SET quantity = quantity - n WHERE id = ? AND quantity >= n

    Returns False when the guard matched no row (missing product or not
    enough stock). Caller owns the transaction and must roll back on False.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.quantity >= quantity)
        .values(
            quantity=Product.quantity - quantity,
            version_id=Product.version_id + 1,
        )
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)


def increment(product_id: int, quantity: int) -> bool:
    """Add stock back (restock, receive). Returns False if the product is gone."""
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity=Product.quantity + quantity,
            version_id=Product.version_id + 1,
        )
    )
    result = db.session.execute(stmt)
    return bool(result.rowcount)
