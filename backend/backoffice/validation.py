# Overview: Domain errors and JSON payload validation shared by services and routes.

"""
Payload validation.

Routes hand raw JSON to validate_payload together with the target model and a
ModelValidationPolicy. Column metadata decides how each value is coerced
(Integer, Boolean, Date, String/Text) and whether it may be null or blank;
the policy decides which keys a client may send at all.

Domain rules that metadata cannot express (discount range, payment method,
closure totals) live in the enforce_rules_* functions below.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import Boolean, Date, Integer, String

from backoffice.time_utils import parse_iso_date

# R$ 9.999.999,99
MAX_PRICE_CENTS = 999_999_999

# 100% in basis points
MAX_DISCOUNT_BPS = 10_000

# December of MAX_YEAR still needs date(MAX_YEAR + 1, 1, 1) as its end bound.
MIN_YEAR = 2000
MAX_YEAR = 9998

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INT_RE = re.compile(r"^-?\d+$")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing entity."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate company name)."""


class StoreError(RuntimeError):
    """500-level persistence failure. The session has already been rolled back."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    writable_fields: keys a client may send (anything else is rejected)
    required_on_create: keys that must be present when partial=False
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings ("12", "-3"). Rejects bools, floats,
    decimals ("12.5") and scientific notation ("1e3").
    """
    if value is None:
        raise ValidationError(f"{key} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def validate_period(month: int, year: int) -> None:
    """A billing month: 1-12 within MIN_YEAR..MAX_YEAR."""
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if isinstance(year, bool) or not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")


def coerce_date(key: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
        raise ValidationError(f"{key} must be an ISO-8601 date (YYYY-MM-DD)")
    raise ValidationError(f"{key} must be a date")


def coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{key} must be true or false")


def _coerce_text(key: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{key} must be text")
    return str(value).strip()


# Text subclasses String, so the String entry covers both.
_COERCERS: list[tuple[type, Callable[[str, Any], Any]]] = [
    (Boolean, coerce_bool),
    (Integer, coerce_int),
    (Date, coerce_date),
    (String, _coerce_text),
]


def _coercer_for(column) -> Callable[[str, Any], Any] | None:
    for coltype, coercer in _COERCERS:
        if isinstance(column.type, coltype):
            return coercer
    return None


def _clean_value(column, raw: Any) -> Any:
    if raw is None:
        if not column.nullable:
            raise ValidationError(f"{column.key} cannot be null")
        return None

    coercer = _coercer_for(column)
    value = coercer(column.key, raw) if coercer else raw

    if isinstance(value, str):
        if value == "" and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        length = getattr(column.type, "length", None)
        if length and len(value) > length:
            raise ValidationError(f"{column.key} exceeds max length {length}")
        if value == "":
            return None
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Returns a cleaned patch holding only writable, coerced fields.

    partial=False: create semantics (required_on_create enforced)
    partial=True: patch semantics (only the keys sent are validated)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

    return {key: _clean_value(columns[key], raw) for key, raw in payload.items()}


def enforce_rules_company(patch: dict) -> None:
    from backoffice.models import PaymentMethod

    bps = patch.get("discount_bps")
    if bps is not None and not 0 <= bps <= MAX_DISCOUNT_BPS:
        raise ValidationError("discount must be between 0 and 100 percent")

    method = patch.get("payment_method")
    if method is not None and method not in {m.value for m in PaymentMethod}:
        allowed = ", ".join(sorted(m.value for m in PaymentMethod))
        raise ValidationError(f"payment_method must be one of: {allowed}")

    email = patch.get("email")
    if email is not None and not EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")


def enforce_rules_closure_override(patch: dict) -> None:
    for key in ("total_p", "total_m", "total_g", "total_value_cents"):
        value = patch.get(key)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
    value = patch.get("total_value_cents")
    if value is not None and value > MAX_PRICE_CENTS:
        raise ValidationError(f"total_value_cents cannot exceed {MAX_PRICE_CENTS}")
