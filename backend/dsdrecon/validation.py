from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from dsdrecon.time_utils import parse_iso_date


# Maximum unit cost / amount: 99,999,999.9999 fits Numeric(12, 4)
MAX_MONEY = Decimal("99999999.9999")

_MONEY_JUNK = re.compile(r"[$,\s]")


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_decimal(value: Any, *, default: Decimal | None = None) -> Decimal | None:
    """
    Defensive numeric coercion for extracted and submitted values.

    - int/float/Decimal pass through (bool is rejected)
    - strings have currency symbols, thousands separators and whitespace removed
    - anything unparseable or non-finite returns `default`

    Never raises: OCR output is routinely dirty and a bad cell must not abort
    the whole invoice.
    """
    if value is None or isinstance(value, bool):
        return default

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = _MONEY_JUNK.sub("", str(value))
        # "(12.50)" is accounting notation for a negative amount
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
        if negative:
            result = -result

    if not result.is_finite():
        return default
    if abs(result) > MAX_MONEY:
        return default
    return result


def coerce_money(value: Any) -> Decimal:
    """Coerce to Decimal, defaulting missing/unparseable values to zero."""
    return coerce_decimal(value, default=Decimal("0"))


def coerce_int(value: Any, *, default: int | None = None) -> int | None:
    """Coerce to int; fractional values are truncated toward zero."""
    number = coerce_decimal(value)
    if number is None:
        return default
    return int(number)


def coerce_date(value: Any, *, field: str) -> date | None:
    """Parse a date field, raising ValidationError on malformed input."""
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")


def clean_str(value: Any, *, max_length: int | None = None) -> str | None:
    """Strip a string value; blank becomes None."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if max_length is not None:
        s = s[:max_length]
    return s


def require_fields(payload: dict, *fields: str) -> None:
    """Raise a single ValidationError naming every missing/blank field."""
    missing = []
    for name in fields:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
        elif isinstance(value, (list, tuple)) and not value:
            missing.append(name)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def decimal_to_json(value: Decimal | None) -> float | None:
    """Serialize a Decimal for JSON responses."""
    if value is None:
        return None
    return float(value)
