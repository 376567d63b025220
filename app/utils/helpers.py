"""Shared request-parsing helpers used by the repair blueprints and services.

get_field:       read a body key in snake_case or camelCase
parse_date:      ISO / DD.MM.YYYY → date, None on bad input
parse_decimal:   JSON number or string → Decimal, ValidationError on bad input
parse_id_list:   list of ints, ValidationError on bad input
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from app.core.exceptions import ValidationError

_MISSING = object()


def _camel(name):
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def get_field(data, name, default=None):
    """Return ``data[name]`` accepting either the snake_case or camelCase key."""
    value = data.get(name, _MISSING)
    if value is _MISSING:
        value = data.get(_camel(name), _MISSING)
    return default if value is _MISSING else value


def has_field(data, name):
    return name in data or _camel(name) in data


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_decimal(value, field, *, required=True, minimum=None, default=None):
    """Coerce a JSON value to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1.
    """
    if value is None or value == "":
        if required:
            raise ValidationError(
                f"{field} is required",
                details={field: "required"},
                code="ERR_VALIDATION_REQUIRED",
            )
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"})
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", details={field: "invalid"})
    if minimum is not None and result < minimum:
        raise ValidationError(
            f"{field} must be >= {minimum}", details={field: "out of range"},
        )
    return result


def parse_id_list(value, field):
    """Validate a non-empty list of integer ids, preserving order and dropping duplicates."""
    if not isinstance(value, list) or not value:
        raise ValidationError(
            f"{field} must be a non-empty list",
            details={field: "required"},
            code="ERR_VALIDATION_REQUIRED",
        )
    ids = []
    for raw in value:
        if isinstance(raw, bool):
            raise ValidationError(f"{field} must contain integer ids", details={field: "invalid"})
        try:
            pk = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(
                f"{field} must contain integer ids", details={field: "invalid"},
            ) from None
        if pk not in ids:
            ids.append(pk)
    return ids
