from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_datetime

E = TypeVar("E", bound=Enum)


def require_non_empty(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value.strip() or None


def require_id(value: Any, field_name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"{field_name} is required")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer id")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} must be an integer id")
    if number <= 0:
        raise ValidationError(f"{field_name} must be a positive id")
    return number


def require_choice(value: Any, field_name: str, enum_cls: Type[E]) -> E:
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def require_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    text = require_non_empty(value, field_name)
    try:
        return parse_iso_datetime(text)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO-8601 datetime")


def optional_positive_int(value: Any, field_name: str, default: int) -> int:
    if value is None or value == "":
        return default
    return require_id(value, field_name)
