# Overview: Option vocabularies for product attributes (names, colors, qualities, sizes, units).

"""
Deleting an option value never rewrites products. What happens while
products still carry the value is decided by TAXONOMY_DELETE_POLICY:

- orphan (default): the option is deleted; products keep the now
  unlisted string.
- block: deletion is refused with 409 while option_usage() > 0.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductOption
from ..models.inventory import OPTION_TYPES

DELETE_POLICIES = ("orphan", "block")

# Option type -> Product column holding the value
_PRODUCT_COLUMNS = {
    "product_name": Product.name,
    "color": Product.color,
    "quality": Product.quality,
    "size": Product.size,
    "unit": Product.unit,
}

DEFAULT_OPTIONS = {
    "product_name": ["Hoa hồng", "Hoa ly", "Hoa cúc", "Hoa lan"],
    "color": ["Đỏ", "Trắng", "Hồng", "Vàng", "Tím"],
    "quality": ["Loại 1", "Loại 2"],
    "size": ["Nhỏ", "Vừa", "Lớn"],
    "unit": ["Cành", "Bó", "Chậu"],
}


def _require_type(option_type: str) -> str:
    if option_type not in OPTION_TYPES:
        raise ValidationError(
            f"Invalid option type: {option_type}",
            details={"allowed": list(OPTION_TYPES)},
        )
    return option_type


def _normalize_value(value: str | None) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("value is required")
    return value


def delete_policy() -> str:
    policy = current_app.config.get("TAXONOMY_DELETE_POLICY", "orphan")
    if policy not in DELETE_POLICIES:
        raise ValidationError(f"Unknown TAXONOMY_DELETE_POLICY: {policy}")
    return policy


def list_options(option_type: str | None = None) -> dict[str, list[str]]:
    """Values grouped by type, sorted alphabetically."""
    types = [_require_type(option_type)] if option_type else list(OPTION_TYPES)
    rows = (
        db.session.query(ProductOption)
        .filter(ProductOption.option_type.in_(types))
        .order_by(ProductOption.option_type.asc(), ProductOption.value.asc())
        .all()
    )
    grouped: dict[str, list[str]] = {t: [] for t in types}
    for row in rows:
        grouped[row.option_type].append(row.value)
    return grouped


def add_option(option_type: str, value: str) -> ProductOption:
    _require_type(option_type)
    value = _normalize_value(value)

    existing = (
        db.session.query(ProductOption)
        .filter_by(option_type=option_type, value=value)
        .first()
    )
    if existing:
        raise ConflictError(
            "Option already exists",
            details={"option_type": option_type, "value": value},
        )

    option = ProductOption(option_type=option_type, value=value)
    db.session.add(option)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(
            "Option already exists",
            details={"option_type": option_type, "value": value},
        )
    return option


def option_usage(option_type: str, value: str) -> int:
    """Number of products whose attribute currently equals value."""
    column = _PRODUCT_COLUMNS[_require_type(option_type)]
    return db.session.query(Product.id).filter(column == value).count()


def delete_option(option_type: str, value: str) -> dict:
    """
    Delete an option value under the configured policy.

    Returns {"option_type", "value", "orphaned_products"}.
    """
    _require_type(option_type)
    value = _normalize_value(value)

    option = (
        db.session.query(ProductOption)
        .filter_by(option_type=option_type, value=value)
        .first()
    )
    if option is None:
        raise NotFoundError(
            "Option not found",
            details={"option_type": option_type, "value": value},
        )

    in_use = option_usage(option_type, value)
    if in_use and delete_policy() == "block":
        raise ConflictError(
            "Option is still used by products",
            details={"option_type": option_type, "value": value, "products": in_use},
        )

    db.session.delete(option)
    db.session.commit()

    if in_use:
        current_app.logger.warning(
            "Option %s=%r deleted while %s products still use it", option_type, value, in_use
        )
    return {"option_type": option_type, "value": value, "orphaned_products": in_use}


def seed_default_options() -> int:
    """Insert DEFAULT_OPTIONS values that are missing. Returns number added."""
    added = 0
    for option_type, values in DEFAULT_OPTIONS.items():
        existing = set(list_options(option_type)[option_type])
        for value in values:
            if value not in existing:
                db.session.add(ProductOption(option_type=option_type, value=value))
                added += 1
    db.session.commit()
    return added
