from __future__ import annotations
from datetime import datetime
from fleur.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401 (re-exported for routes)


# Maximum amount: 999,999,999,999 VND
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = 999_999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer parsing: rejects floats, bools and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields without a default
        if isinstance(col.type, (String, Text)) and not col.nullable and col.default is None:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        amount = patch[key]
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0")
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT:,} VND")


def enforce_rules_product(patch: dict, existing=None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.

    Sell price must exceed cost price. This is an entry rule only: the
    data layer does not enforce it.
    """
    for key in ("price", "cost_price", "max_discount_per_unit", "quantity"):
        _check_amount(patch, key)

    if "price" in patch or "cost_price" in patch:
        price = patch.get("price", existing.price if existing is not None else None)
        cost = patch.get("cost_price", existing.cost_price if existing is not None else None)
        if price is not None and cost is not None and price <= cost:
            raise ValidationError(
                "Sell price must be greater than cost price",
                details={"price": price, "cost_price": cost},
            )


def enforce_rules_customer(patch: dict) -> None:
    phone = patch.get("phone")
    if phone and not phone.replace(" ", "").replace("+", "").isdigit():
        raise ValidationError("phone must contain digits only")


def optional_int(payload: dict, key: str, default: int = 0, minimum: int | None = 0) -> int:
    raw = payload.get(key)
    if raw is None or raw == "":
        return default
    value = coerce_int(key, raw)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return value


def parse_line_items(raw_items: Any, *, require_cost: bool = False) -> list[dict]:
    """
    Normalize a list of {product_id, quantity, item_discount?, note?, unit_cost?}.

    quantity must be >= 1; item_discount and unit_cost must be >= 0.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        item = {
            "product_id": coerce_int("product_id", raw.get("product_id")),
            "quantity": coerce_int("quantity", raw.get("quantity")),
            "item_discount": optional_int(raw, "item_discount"),
            "note": (str(raw["note"]).strip() or None) if raw.get("note") else None,
        }
        if item["quantity"] < 1:
            raise ValidationError(
                f"items[{index}].quantity must be >= 1",
                details={"product_id": item["product_id"]},
            )
        if require_cost:
            if raw.get("unit_cost") is None:
                raise ValidationError(f"items[{index}].unit_cost is required")
            item["unit_cost"] = optional_int(raw, "unit_cost")
        items.append(item)
    return items
