from __future__ import annotations
import re
from datetime import date, datetime
from posdesk.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, Date
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Same shape check the email provider integration applies before sending
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["field"] = self.field
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., reopening a paid invoice)."""


class NotFoundError(LookupError):
    """404-level missing record (or a record owned by someone else)."""


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


def _coerce_int(key: str, value: Any) -> int:
    # bool is an int subclass but never a quantity or an amount
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", field=key)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # JSON clients often send 5.0 for 5
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal", field=key)
    if isinstance(value, str):
        text = value.strip()
        if "e" in text.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", field=key)
        if "." in text:
            raise ValidationError(f"{key} must be an integer (no decimals)", field=key)
        try:
            return int(text)
        except ValueError:
            pass
    raise ValidationError(f"{key} must be an integer", field=key)


def _coerce_temporal(key: str, value: Any, parse, label: str):
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be {label}", field=key)
    try:
        parsed = parse(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be {label}", field=key)
    return parsed


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        return value if isinstance(value, bool) else bool(value)

    # Datetimes are normalized to naive UTC
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        return _coerce_temporal(col.key, value, parse_iso_datetime, "an ISO-8601 datetime")

    # Calendar dates ("YYYY-MM-DD")
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return _coerce_temporal(col.key, value, parse_iso_date, "a YYYY-MM-DD date")

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

        # Blank optional text is stored as NULL
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


def _check_cents(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0", field=key)
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})", field=key)


def apply_threshold_default(payload: dict, *, partial: bool, default: int) -> dict:
    """
    An absent, null or blank low_stock_threshold falls back to the default.
    On updates only an explicit null/blank resets it.
    """
    payload = dict(payload or {})
    raw = payload.get("low_stock_threshold")
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        if partial and "low_stock_threshold" not in payload:
            return payload
        payload["low_stock_threshold"] = default
    return payload


def enforce_rules_product(patch: dict, categories: tuple[str, ...]) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "category" in patch and patch["category"] not in categories:
        raise ValidationError(f"category must be one of: {', '.join(categories)}", field="category")

    _check_cents(patch, "price_cents")

    if "stock" in patch and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0", field="stock")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0", field="low_stock_threshold")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value.strip()) is not None


def enforce_rules_invoice(patch: dict, statuses: tuple[str, ...], *, today: date, current_due_date: date | None = None) -> None:
    """
    Invoice rules: non-negative amount, known status, well-formed email and
    a due date that is not in the past. On updates the due date is only
    checked when it actually changes.
    """
    _check_cents(patch, "amount_cents")

    if "status" in patch and patch["status"] not in statuses:
        raise ValidationError(f"status must be one of: {', '.join(statuses)}", field="status")

    if patch.get("email") and not is_valid_email(patch["email"]):
        raise ValidationError("email must be a valid email address", field="email")

    due = patch.get("due_date")
    if due is not None and due != current_due_date and due < today:
        raise ValidationError("due_date cannot be in the past", field="due_date")
