"""Field type mapping: storage column types, input coercion and output rendering.

Every declared :class:`~ahoi.core.types.FieldType` has exactly one storage
type and one coercion rule. Unknown type strings behave like ``TEXT_SHORT``.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, date, datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import BigInteger, Boolean, Date, DateTime, Numeric, String, Text
from sqlalchemy.types import TypeEngine

from ahoi.core.types import FieldType
from ahoi.exceptions import ValidationError

SHORT_TEXT_LENGTH = 255
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
# NUMERIC(10, 2) leaves eight integer digits
DECIMAL_LIMIT = Decimal("100000000")
CENT = Decimal("0.01")

TRUTHY = frozenset({"true", "1", "yes", "on"})
FALSY = frozenset({"false", "0", "no", "off", ""})

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

_STORAGE_TYPES: dict[FieldType, Any] = {
    FieldType.TEXT_SHORT: lambda: String(SHORT_TEXT_LENGTH),
    FieldType.TEXT_LONG: lambda: Text(),
    FieldType.NUMBER_INT: lambda: BigInteger(),
    FieldType.NUMBER_DECIMAL: lambda: Numeric(10, 2, asdecimal=False),
    FieldType.BOOLEAN: lambda: Boolean(create_constraint=False),
    FieldType.DATETIME: lambda: DateTime(),
    FieldType.DATE: lambda: Date(),
    FieldType.RELATIONSHIP: lambda: BigInteger(),
    FieldType.JSON: lambda: Text(),
}

_NEUTRAL_DEFAULTS: dict[FieldType, str] = {
    FieldType.TEXT_SHORT: "",
    FieldType.TEXT_LONG: "",
    FieldType.NUMBER_INT: "0",
    FieldType.NUMBER_DECIMAL: "0",
    FieldType.BOOLEAN: "0",
    FieldType.DATETIME: "1970-01-01 00:00:00",
    FieldType.DATE: "1970-01-01",
    FieldType.RELATIONSHIP: "0",
    FieldType.JSON: "null",
}


def resolve_type(field_type: str | FieldType) -> FieldType:
    """Return the declared type, falling back to TEXT_SHORT for unknown strings."""
    try:
        return FieldType(field_type)
    except ValueError:
        return FieldType.TEXT_SHORT


def storage_type(field_type: str | FieldType) -> TypeEngine[Any]:
    """Return a fresh SQLAlchemy column type for a field type."""
    return _STORAGE_TYPES[resolve_type(field_type)]()


def neutral_default(field_type: str | FieldType) -> str:
    """Backfill value used when a required column is added without a default."""
    return _NEUTRAL_DEFAULTS[resolve_type(field_type)]


def strip_tags(value: str) -> str:
    """Remove markup tags, including script and style bodies."""
    return _TAG_RE.sub("", _SCRIPT_STYLE_RE.sub("", value))


def _as_text(value: Any) -> str:
    if isinstance(value, (dict, list, tuple, set)):
        raise ValidationError("Expected a text value.")
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation as e:
            raise ValidationError(f"'{value}' is not a number.") from e
    else:
        raise ValidationError("Expected a numeric value.")
    if not number.is_finite():
        raise ValidationError(f"'{value}' is not a finite number.")
    return number


def _coerce_short_text(value: Any) -> str:
    text = _WHITESPACE_RE.sub(" ", strip_tags(_as_text(value))).strip()
    if len(text) > SHORT_TEXT_LENGTH:
        raise ValidationError(f"Text is longer than {SHORT_TEXT_LENGTH} characters.")
    return text


def _coerce_long_text(value: Any) -> str:
    return strip_tags(_as_text(value)).strip()


def _coerce_int(value: Any) -> int:
    number = int(_as_decimal(value).to_integral_value(rounding=ROUND_DOWN))
    if not INT64_MIN <= number <= INT64_MAX:
        raise ValidationError("Integer is out of range.")
    return number


def _coerce_decimal(value: Any) -> float:
    number = _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    if abs(number) >= DECIMAL_LIMIT:
        raise ValidationError("Decimal is out of range.")
    return float(number)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUTHY:
            return True
        if lowered in FALSY:
            return False
    raise ValidationError(f"'{value}' is not a boolean.")


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise ValidationError(f"'{value}' is not a valid date-time.") from e
    else:
        raise ValidationError("Expected a date-time string.")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError("Expected a date string.")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError as e:
        raise ValidationError(f"'{value}' is not a valid date.") from e


def _coerce_relationship(value: Any) -> int:
    number = _coerce_int(value)
    if number < 0:
        raise ValidationError("Related id must not be negative.")
    return number


def _coerce_json(value: Any) -> str:
    if isinstance(value, str):
        try:
            json.loads(value)
        except ValueError as e:
            raise ValidationError("Value is not valid JSON.") from e
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Value cannot be encoded as JSON.") from e


_COERCERS = {
    FieldType.TEXT_SHORT: _coerce_short_text,
    FieldType.TEXT_LONG: _coerce_long_text,
    FieldType.NUMBER_INT: _coerce_int,
    FieldType.NUMBER_DECIMAL: _coerce_decimal,
    FieldType.BOOLEAN: _coerce_bool,
    FieldType.DATETIME: _coerce_datetime,
    FieldType.DATE: _coerce_date,
    FieldType.RELATIONSHIP: _coerce_relationship,
    FieldType.JSON: _coerce_json,
}


def coerce(field_type: str | FieldType, value: Any) -> Any:
    """Coerce a raw input value into the Python value stored for ``field_type``.

    Raises:
        ValidationError: If the value cannot be represented by the type
    """
    if value is None:
        return None
    return _COERCERS[resolve_type(field_type)](value)


def default_literal(field_type: str | FieldType, default_value: str | None) -> str:
    """Render a column default as the literal used in ``ADD COLUMN ... DEFAULT``.

    ``default_value`` passes through coercion first; without one the neutral
    backfill value for the type is used.
    """
    kind = resolve_type(field_type)
    if default_value is None:
        return neutral_default(kind)
    value = coerce(kind, default_value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def present(field_type: str | FieldType, value: Any) -> Any:
    """Render a stored value as a JSON-ready value."""
    if value is None:
        return None
    kind = resolve_type(field_type)
    if kind == FieldType.JSON:
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return value
    if kind == FieldType.BOOLEAN:
        return bool(value)
    return present_value(value)


def present_value(value: Any) -> Any:
    """Render a base-column value (dates and decimals) as JSON-ready."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


__all__ = [
    "coerce",
    "default_literal",
    "neutral_default",
    "present",
    "present_value",
    "resolve_type",
    "storage_type",
    "strip_tags",
]
