from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from printshop.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import MAX_MONEY, MAX_QUANTITY, to_money, to_quantity


PAYMENT_METHODS = ("cash", "bank")


def field_error(key: str, message: str) -> ValidationError:
    return ValidationError(message, fields={key: message})


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: enumerated string fields and their allowed values
    - non_negative: numeric fields that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)
    non_negative: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_money(key: str, value: Any, *, minimum: Decimal | None = None, strictly_positive: bool = False) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError):
        raise field_error(key, f"{key} must be a number")
    if amount.copy_abs() > MAX_MONEY:
        raise field_error(key, f"{key} exceeds the maximum allowed amount")
    if strictly_positive and amount <= 0:
        raise field_error(key, f"{key} must be greater than 0")
    if minimum is not None and amount < minimum:
        raise field_error(key, f"{key} must be >= {minimum}")
    return amount


def coerce_quantity(key: str, value: Any, *, strictly_positive: bool = False) -> Decimal:
    try:
        qty = to_quantity(value)
    except (InvalidOperation, ValueError):
        raise field_error(key, f"{key} must be a number")
    if qty > MAX_QUANTITY:
        raise field_error(key, f"{key} exceeds the maximum allowed quantity")
    if strictly_positive and qty <= 0:
        raise field_error(key, f"{key} must be greater than 0")
    if qty < 0:
        raise field_error(key, f"{key} must be >= 0")
    return qty


def coerce_date(key: str, value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise field_error(key, f"{key} must be an ISO-8601 date")
    raise field_error(key, f"{key} must be a date")


def coerce_datetime(key: str, value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise field_error(key, f"{key} must be an ISO-8601 datetime")
    raise field_error(key, f"{key} must be a datetime")


def coerce_choice(key: str, value: Any, allowed: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise field_error(key, f"{key} must be one of: {', '.join(allowed)}")
    return value


def coerce_id(key: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise field_error(key, f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise field_error(key, f"{key} must be an integer")


def coerce_text(key: str, value: Any, *, max_length: int | None = None, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise field_error(key, f"{key} is required")
        return None
    text = str(value).strip()
    if required and not text:
        raise field_error(key, f"{key} cannot be blank")
    if max_length and len(text) > max_length:
        raise field_error(key, f"{key} exceeds max length {max_length}")
    return text or None


def coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise field_error(key, f"{key} must be a boolean")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_id(col.key, value)

    if isinstance(coltype, Boolean):
        return coerce_bool(col.key, value)

    # Numeric(12, 2) is money; anything with more places is a quantity
    if isinstance(coltype, Numeric):
        if (coltype.scale or 0) > 2:
            return coerce_quantity(col.key, value)
        return coerce_money(col.key, value)

    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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
    - enumerated choices and non-negative numeric fields
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
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                fields={f: f"{f} is required" for f in missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise field_error(k, f"Field not allowed: {k}")
        if k not in cols:
            raise field_error(k, f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise field_error(k, f"{k} cannot be null")
            patch[k] = None
            continue

        if k in policy.choices:
            val = coerce_choice(k, raw, policy.choices[k])
        else:
            val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise field_error(k, f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise field_error(k, f"{k} exceeds max length {col.type.length}")

        if k in policy.non_negative and val is not None and val < 0:
            raise field_error(k, f"{k} must be >= 0")

        patch[k] = val

    return patch


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
