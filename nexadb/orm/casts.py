"""
NexaDB Attribute Casts
======================

Conversions between stored column values and Python values.

Read casts:
- int, integer
- real, float, double
- decimal
- string
- bool, boolean
- object, array, json
- date
- datetime, timestamp

Writes format every date and datetime by the model's date policy,
whether or not the attribute is declared in the cast map.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional


INTEGER_CASTS = ("int", "integer")
FLOAT_CASTS = ("real", "float", "double")
BOOLEAN_CASTS = ("bool", "boolean")
JSON_CASTS = ("object", "array", "json")
DATETIME_CASTS = ("datetime", "timestamp")

LOCAL_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

_PARSE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
)


def parse_datetime(value: Any) -> datetime:
    """Parse ISO strings, common SQL formats and unix timestamps."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass

        for fmt in _PARSE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue

    raise ValueError(f"Cannot convert {value!r} to datetime")


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def cast_value(cast: Optional[str], value: Any) -> Any:
    """Read path: stored representation to native type."""
    if value is None or not cast:
        return value

    cast = cast.lower()

    if cast in INTEGER_CASTS:
        return int(value)
    if cast in FLOAT_CASTS:
        return float(value)
    if cast == "decimal":
        return Decimal(str(value))
    if cast == "string":
        return str(value)
    if cast in BOOLEAN_CASTS:
        return to_bool(value)
    if cast in JSON_CASTS:
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value
    if cast == "date":
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        return parse_datetime(value).date()
    if cast in DATETIME_CASTS:
        return parse_datetime(value)

    return value


def format_date(value: date, utc: bool = False) -> str:
    """
    Format a date or datetime for storage.

    UTC policy: ISO-8601 with offset, naive values taken as UTC.
    Local policy: ``YYYY-MM-DD HH:MM:SS`` in local time.
    Plain dates are always ``YYYY-MM-DD``.
    """
    if not isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)

    if utc:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()

    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime(LOCAL_FORMAT)


def serialize_value(cast: Optional[str], value: Any, utc: bool = False) -> Any:
    """Write path: native type to the value bound in SQL."""
    if value is None:
        return None

    if isinstance(value, date):
        return format_date(value, utc)

    if not cast:
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return value

    cast = cast.lower()

    if cast in JSON_CASTS:
        if isinstance(value, (str, bytes)):
            return value
        return json.dumps(value, default=str)
    if cast in INTEGER_CASTS:
        return int(value)
    if cast in FLOAT_CASTS:
        return float(value)
    if cast == "string":
        return str(value)
    if cast in BOOLEAN_CASTS:
        return to_bool(value)
    if cast == "decimal":
        return str(value)
    if cast == "date":
        return format_date(cast_value("date", value), utc)
    if cast in DATETIME_CASTS:
        return format_date(parse_datetime(value), utc)

    return value
