from __future__ import annotations
from datetime import date, datetime
from consignment.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# =============================================================================
# ERROR TAXONOMY
# =============================================================================

class DomainError(Exception):
    """
    Base for business errors surfaced as structured 4xx responses.

    - code: machine-readable error code
    - ids: offending entity ids (e.g. transactions rejected from a payout)
    - field: offending input field for validation problems
    """
    status_code = 400
    code = "error"

    def __init__(
        self,
        message: str,
        *,
        ids: Iterable[int] | None = None,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.ids = sorted(ids) if ids else []
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.ids:
            body["ids"] = self.ids
        if self.field:
            body["field"] = self.field
        body.update(self.details)
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "validation_error"


class NotFoundError(DomainError, LookupError):
    """404: unknown organization, consignor, item, transaction, payout or statement."""
    status_code = 404
    code = "not_found"


class ConflictError(DomainError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU, transaction already paid out)."""
    status_code = 409
    code = "conflict"


class AuthorizationError(DomainError):
    """
    Access denied for the tenant.

    401 when the caller or its organization cannot be resolved, 402 when the
    subscription status or tier does not cover the feature.
    """
    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str, *, status_code: int = 401, upgrade_required: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.upgrade_required = upgrade_required
        if status_code == 402:
            self.code = "payment_required"

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.status_code == 402:
            body["upgrade_required"] = self.upgrade_required
        return body


def error_response(exc: DomainError) -> tuple[dict, int]:
    """Render a taxonomy error as a (json body, status) pair for Flask routes."""
    return exc.to_dict(), exc.status_code


# =============================================================================
# PAYLOAD VALIDATION
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - enum_fields: fields restricted to an Enum's values
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    enum_fields: dict[str, type[Enum]] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_enum(enum_cls: type[Enum], value: Any, field: str) -> str:
    """Normalize a client value ("paid", "PAID") into the enum's stored value."""
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, enum_cls):
        return value.value
    normalized = str(value).strip().upper().replace(" ", "_").replace("-", "_")
    try:
        return enum_cls(normalized).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}", field=field)


def coerce_int(value: Any, field: str) -> int:
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


def coerce_int_list(value: Any, field: str) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list of ids", field=field)
    return [coerce_int(v, field) for v in value]


def coerce_date(value: Any, field: str) -> date:
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


def coerce_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
        return dt
    raise ValidationError(f"{field} must be a datetime", field=field)


def require_period(period_start: date, period_end: date) -> None:
    if period_end < period_start:
        raise ValidationError("period_end must not be before period_start", field="period_end")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false", field=col.key)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        return coerce_datetime(value, col.key)

    if isinstance(coltype, Date):
        return coerce_date(value, col.key)

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
    partial=True: update semantics (only validate provided keys)
    """
    if not isinstance(payload, dict):
        raise ValidationError("JSON body must be an object")

    cols = _columns_by_key(model)
    required = policy.required_on_create or set()
    enum_fields = policy.enum_fields or {}

    unknown = set(payload) - policy.writable_fields
    if unknown:
        raise ValidationError(f"Unknown or read-only fields: {', '.join(sorted(unknown))}")

    if not partial:
        missing = [f for f in sorted(required) if payload.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    patch: dict = {}
    for key, raw in payload.items():
        col = cols.get(key)
        if col is None:
            # Writable but not a column (e.g. a percentage converted by the caller)
            patch[key] = raw
            continue

        if key in enum_fields and raw is not None:
            value = coerce_enum(enum_fields[key], raw, key)
        else:
            value = _coerce_value(col, raw)

        if value is None and not col.nullable:
            raise ValidationError(f"{key} cannot be null", field=key)

        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be empty", field=key)
            max_len = getattr(col.type, "length", None)
            if max_len and len(value) > max_len:
                raise ValidationError(f"{key} must be at most {max_len} characters", field=key)

        patch[key] = value

    return patch


# =============================================================================
# QUERY STRING HELPERS
# =============================================================================

def pagination_args(args, *, default_limit: int = 100, max_limit: int = 500) -> tuple[int, int]:
    """Read limit/offset from request args, clamped to sane bounds."""
    limit = coerce_int(args.get("limit", default_limit), "limit")
    offset = coerce_int(args.get("offset", 0), "offset")
    if limit < 1:
        limit = 1
    if limit > max_limit:
        limit = max_limit
    if offset < 0:
        offset = 0
    return limit, offset


def optional_date(args, name: str) -> date | None:
    value = args.get(name)
    if value in (None, ""):
        return None
    return coerce_date(value, name)


def optional_int(args, name: str) -> int | None:
    value = args.get(name)
    if value in (None, ""):
        return None
    return coerce_int(value, name)


def optional_bool(args, name: str) -> bool | None:
    value = args.get(name)
    if value in (None, ""):
        return None
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"{name} must be true or false", field=name)
