from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text

from serialdesk.time_utils import parse_iso_date, parse_iso_datetime


# Prices are integer cents; ceiling is 9,999,999.99
MAX_PRICE_CENTS = 999_999_999

MAX_WARRANTY_MONTHS = 120

UNIT_STATUSES = ("available", "sold", "reserved", "defective", "returned")
STOCK_TYPES = ("online", "offline", "both")


class ValidationError(ValueError):
    """Malformed or out-of-range input (HTTP 400)."""


class ConflictError(ValueError):
    """Input collides with existing state, e.g. a serial already taken (HTTP 409)."""


class NotFoundError(LookupError):
    """Referenced row does not exist (HTTP 404)."""


class DependencyUnavailableError(RuntimeError):
    """Mail relay or document storage refused the request (HTTP 502)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write through a given endpoint.

    Anything outside writable_fields is rejected rather than ignored, so a
    policy is also the list of mass-assignable attributes.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass; JSON true/false is never a count or a price
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isdigit():
            return int(text)
    raise ValidationError(f"{key} must be an integer")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{key} must be a boolean")


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _as_date(key: str, value: Any) -> date:
    try:
        parsed = parse_iso_date(value) if isinstance(value, (date, str)) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 date")
    return parsed


def _as_text(key: str, value: Any) -> str:
    return str(value).strip()


_COERCERS: tuple[tuple[type, Callable[[str, Any], Any]], ...] = (
    (Integer, _as_int),
    (Boolean, _as_bool),
    (DateTime, _as_datetime),
    (Date, _as_date),
    (String, _as_text),
    (Text, _as_text),
)


def _coerce(col, value: Any):
    for coltype, coerce in _COERCERS:
        if isinstance(col.type, coltype):
            return coerce(col.key, value)
    # JSON and anything else passes through
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a dict of column values ready for setattr.

    Column metadata drives the checks: type coercion, nullability, blank
    strings on NOT NULL text, and String(n) length. partial=True validates
    only the keys present (PATCH); partial=False also demands
    required_on_create (POST).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(set(policy.required_on_create) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if key not in columns:
            raise ValidationError(f"Unknown field: {key}")

    cleaned: dict = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            cleaned[key] = None
            continue

        value = _coerce(col, raw)
        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            limit = getattr(col.type, "length", None)
            if limit and len(value) > limit:
                raise ValidationError(f"{key} exceeds max length {limit}")
        cleaned[key] = value

    return cleaned


def _check_price(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        price = patch[key]
        if not isinstance(price, int):
            raise ValidationError(f"{key} must be an integer")
        if price < 0:
            raise ValidationError(f"{key} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def _check_warranty_months(patch: dict) -> None:
    months = patch.get("warranty_period_months")
    if months is None:
        return
    if months < 1 or months > MAX_WARRANTY_MONTHS:
        raise ValidationError(f"warranty_period_months must be between 1 and {MAX_WARRANTY_MONTHS}")


def enforce_rules_product(patch: dict, *, creating: bool = False, current=None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.

    A price is required unless the product is sold by quote only.
    `current` is the product being patched (None on create).
    """
    _check_price(patch, "price_cents")
    _check_price(patch, "retailer_price_cents")
    _check_warranty_months(patch)

    requires_quote = patch.get("requires_quote", current.requires_quote if current is not None else False)
    price = patch.get("price_cents", current.price_cents if current is not None else None)
    if (creating or "price_cents" in patch or "requires_quote" in patch) and not requires_quote and price is None:
        raise ValidationError("price_cents is required unless requires_quote is set")

    ids = patch.get("recommended_product_ids")
    if ids is not None:
        if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            raise ValidationError("recommended_product_ids must be a list of product ids")


def enforce_rules_unit(patch: dict) -> None:
    if "status" in patch and patch["status"] not in UNIT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(UNIT_STATUSES)}")
    if "stock_type" in patch and patch["stock_type"] not in STOCK_TYPES:
        raise ValidationError(f"stock_type must be one of: {', '.join(STOCK_TYPES)}")
    _check_warranty_months(patch)
