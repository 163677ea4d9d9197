# backend/fleur/services/inventory_service.py
"""
Products, stock primitives and disposals.

Stock only moves through guarded_decrement / increment (see concurrency.py):
the quantity check and the write are one SQL statement, so two writers can
never both pass the check against the same units.
"""
from __future__ import annotations

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import DisposalLogEntry, Product, User
from .auth_service import actor_name
from .concurrency import guarded_decrement, increment, run_with_retry
from fleur.time_utils import utcnow

PRODUCT_MUTABLE_FIELDS = {
    "name", "color", "quality", "size", "unit", "quantity",
    "price", "cost_price", "max_discount_per_unit", "image",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(search: str | None = None, in_stock_only: bool = False) -> list[Product]:
    """
    Products ordered by name, then color.

    search matches name, color, size or quality (case-insensitive substring).
    """
    query = db.session.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Product.name.ilike(pattern),
                Product.color.ilike(pattern),
                Product.size.ilike(pattern),
                Product.quality.ilike(pattern),
            )
        )
    if in_stock_only:
        query = query.filter(Product.quantity > 0)
    return query.order_by(Product.name.asc(), Product.color.asc(), Product.id.asc()).all()


def create_product(*, patch: dict) -> Product:
    """Create product using a validated patch dict."""
    p = Product()
    p.quantity = 0
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.commit()
    current_app.logger.info("Product %s created: %s", p.id, p.name)
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Patch product attributes.

    A quantity in the patch is an absolute stock correction; version_id makes
    it fail with StaleDataError (retried) if stock moved under it.
    """
    def _op():
        p = get_product(product_id)
        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    """
    Delete a product. Invoices, orders and disposals keep their snapshots.
    """
    p = get_product(product_id)
    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Product %s deleted", product_id)


def decrement_stock(product_id: int, quantity: int) -> None:
    """
    Guarded decrement inside the caller's transaction.

    Raises InsufficientStockError (after nothing was written by this call)
    when the product is missing or holds fewer than `quantity` units.
    """
    if quantity < 1:
        raise ValidationError("quantity must be >= 1")
    if not guarded_decrement(product_id, quantity):
        row = (
            db.session.query(Product.name, Product.quantity)
            .filter(Product.id == product_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        raise InsufficientStockError([{
            "product_id": product_id,
            "name": row.name,
            "requested": quantity,
            "available": row.quantity,
        }])


def dispose_stock(*, product_id: int, quantity: int, reason: str, actor: User | None) -> DisposalLogEntry:
    """
    Write off damaged or expired stock.

    The decrement and the log entry commit together or not at all.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required")

    def _op():
        product = get_product(product_id)
        snapshot = product.snapshot()
        decrement_stock(product_id, quantity)

        entry = DisposalLogEntry(
            product_id=product_id,
            product_name=snapshot["name"],
            color=snapshot["color"],
            quality=snapshot["quality"],
            size=snapshot["size"],
            unit=snapshot["unit"],
            image=snapshot["image"],
            quantity_disposed=quantity,
            reason=reason,
            employee_id=actor.id if actor is not None else None,
            employee_name=actor_name(actor),
            disposal_date=utcnow(),
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    entry = run_with_retry(_op)
    current_app.logger.info(
        "Disposed %s x product %s (%s)", quantity, product_id, reason
    )
    return entry


def list_disposals(product_id: int | None = None) -> list[DisposalLogEntry]:
    query = db.session.query(DisposalLogEntry)
    if product_id is not None:
        query = query.filter(DisposalLogEntry.product_id == product_id)
    return query.order_by(DisposalLogEntry.disposal_date.desc(), DisposalLogEntry.id.desc()).all()
