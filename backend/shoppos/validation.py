# Overview: Request-body coercion shared by the API routes.

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date, parse_iso_datetime


def body_value(data: dict, *keys: str) -> Any:
    """First non-null value among `keys` (snake_case and the POS client's camelCase)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def optional_int(value: Any, field: str) -> int | None:
    """
    Strict integer coercion: bools, floats and scientific notation are
    rejected, digit strings are accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        digits = stripped[1:] if stripped.startswith("-") else stripped
        if digits.isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer")


def optional_str(value: Any, field: str, max_length: int = 255) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped or None


def optional_list(value: Any, field: str) -> list | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list")
    return value


def parse_date_param(value: str | None, field: str = "date") -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def optional_datetime(value: Any, field: str) -> datetime | None:
    """ISO-8601 timestamp (offset or trailing Z), normalized to UTC-naive."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 timestamp")
