from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from ordertrack.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any single money value (prices, fees, ledger amounts).
# 11 integer digits plus 4 decimals stays within the 15 significant digits a
# float carries, which is how SQLite round-trips Numeric(18, 4).
MAX_MONEY = Decimal("99999999999")


class ValidationError(ValueError):
    """400-level input problem. `field` names the offending input when known."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LookupError):
    """404-level: a referenced customer, order, product or ledger entry is missing."""


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


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Coerce JSON/str/int input to Decimal without going through float repr.

    Booleans, NaN and infinities are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # JSON numbers arrive as float; str() keeps the shortest exact repr
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number", field=field)
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if abs(result) > MAX_MONEY:
        raise ValidationError(f"{field} exceeds maximum allowed value", field=field)
    return result


def to_int(value: Any, field: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field)
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def to_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date", field=field)
        if d is None:
            raise ValidationError(f"{field} must be an ISO-8601 date", field=field)
        return d
    raise ValidationError(f"{field} must be a date", field=field)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return to_int(value, col.key)

    if isinstance(coltype, Numeric):
        return to_decimal(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", field=col.key)

    if isinstance(coltype, Date):
        return to_date(value, col.key)

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
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


def enforce_rules_customer(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    if patch.get("discount_percent") is not None:
        pct = patch["discount_percent"]
        if pct < 0 or pct > 100:
            raise ValidationError("discount_percent must be between 0 and 100", field="discount_percent")


def enforce_rules_product_template(patch: dict) -> None:
    if patch.get("default_qty") is not None and patch["default_qty"] <= 0:
        raise ValidationError("default_qty must be > 0", field="default_qty")
    if patch.get("default_price") is not None and patch["default_price"] < 0:
        raise ValidationError("default_price must be >= 0", field="default_price")
