from __future__ import annotations
from datetime import date, datetime
from jewelshop.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.catalog import CUSTOMER_TYPES, METAL_TYPES


# Maximum money value: Rs 2,00,00,000 (2,000,000,000 paise).
# Stays inside a 32-bit Integer column.
MAX_AMOUNT_PAISE = 2_000_000_000

# 100 kg; anything heavier is a data entry error
MAX_WEIGHT_MG = 100_000_000

# Wastage above 100% is never legitimate
MAX_WASTAGE_BPS = 10_000

_PHONE_DIGITS = (10, 13)


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


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

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

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            d = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
        if d is None:
            raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
        return d

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

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

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


def _check_range(patch: dict, field: str, upper: int) -> None:
    if field in patch and patch[field] is not None:
        value = patch[field]
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > upper:
            raise ValidationError(f"{field} cannot exceed {upper}")


def _check_phone(patch: dict, field: str = "phone") -> None:
    phone = patch.get(field)
    if not phone:
        return
    digits = "".join(ch for ch in phone if ch.isdigit())
    if not (_PHONE_DIGITS[0] <= len(digits) <= _PHONE_DIGITS[1]):
        raise ValidationError(f"{field} must contain 10 to 13 digits")


def enforce_rules_customer(patch: dict) -> None:
    _check_phone(patch)
    if "customer_type" in patch and patch["customer_type"] not in CUSTOMER_TYPES:
        raise ValidationError(f"customer_type must be one of {', '.join(sorted(CUSTOMER_TYPES))}")
    _check_range(patch, "credit_limit_paise", MAX_AMOUNT_PAISE)


def enforce_rules_supplier(patch: dict) -> None:
    _check_phone(patch)


def enforce_rules_product(patch: dict, existing=None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "metal_type" in patch:
        patch["metal_type"] = patch["metal_type"].upper()
        if patch["metal_type"] not in METAL_TYPES:
            raise ValidationError(f"metal_type must be one of {', '.join(sorted(METAL_TYPES))}")
    if "purity" in patch:
        patch["purity"] = patch["purity"].upper()

    for field in ("gross_weight_mg", "net_weight_mg"):
        _check_range(patch, field, MAX_WEIGHT_MG)
    _check_range(patch, "wastage_bps", MAX_WASTAGE_BPS)
    for field in ("making_charges_paise", "stone_value_paise"):
        _check_range(patch, field, MAX_AMOUNT_PAISE)

    net = patch.get("net_weight_mg", getattr(existing, "net_weight_mg", None))
    gross = patch.get("gross_weight_mg", getattr(existing, "gross_weight_mg", None))
    if net is not None and net <= 0:
        raise ValidationError("net_weight_mg must be > 0")
    if gross and net is not None and net > gross:
        raise ValidationError("net_weight_mg cannot exceed gross_weight_mg")


def require_object_list(value, field: str, message: str) -> list[dict]:
    """Non-empty list whose every element is a JSON object."""
    if not isinstance(value, list) or not value:
        raise ValidationError(message)
    for idx, element in enumerate(value):
        if not isinstance(element, dict):
            raise ValidationError(f"{field}[{idx}] must be an object")
    return value
