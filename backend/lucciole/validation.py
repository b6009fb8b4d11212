from __future__ import annotations
import math
from datetime import date, datetime
from lucciole.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for prices and quantities; rejects typos like 1e12
MAX_AMOUNT = 1_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., selling a warehouse item from the menu)."""


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


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            raise ValidationError(f"{key} must be a number")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Blank number fields from the client mean "no value"
    if isinstance(coltype, Float):
        if isinstance(value, str) and not value.strip():
            return None
        return _coerce_float(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

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

    # Dates: the client sends "" for "no date"
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, JSON):
        return value

    # Strings / Text
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

        val = _coerce_value(col, raw)

        if val is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str, *, positive: bool = False) -> None:
    value = patch.get(key)
    if value is None:
        return
    if positive and value <= 0:
        raise ValidationError(f"{key} must be > 0")
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")


def enforce_rules_stock_item(patch: dict, *, categories, units) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "category" in patch and patch["category"] not in categories:
        raise ValidationError(f"category must be one of: {', '.join(categories)}")

    if patch.get("unit"):
        if patch["unit"] not in units:
            raise ValidationError(f"unit must be one of: {', '.join(units)}")

    for key in ("quantity", "min_threshold", "cost_price", "sell_price"):
        _check_amount(patch, key)
    for key in ("capacity", "dose"):
        _check_amount(patch, key, positive=True)

    capacity = patch.get("capacity")
    dose = patch.get("dose")
    if capacity and dose and dose > capacity:
        raise ValidationError("dose cannot exceed capacity")


def enforce_rules_menu_item(patch: dict) -> None:
    for key in ("cost_price", "sell_price"):
        _check_amount(patch, key)

    if "linked_product_id" in patch and patch["linked_product_id"] is not None:
        if patch["linked_product_id"] <= 0:
            raise ValidationError("linked_product_id must be a positive id")


def enforce_rules_delta(delta: float) -> None:
    if math.isnan(delta) or math.isinf(delta):
        raise ValidationError("delta must be a finite number")
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if abs(delta) > MAX_AMOUNT:
        raise ValidationError(f"delta cannot exceed {MAX_AMOUNT}")
