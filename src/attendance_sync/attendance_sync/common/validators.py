from __future__ import annotations

from datetime import datetime

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_iso_date(value: str, field_name: str = "date") -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be YYYY-MM-DD, got {value!r}") from None
    return value


def require_positive_id(value, field_name: str) -> int:
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer") from None
    if ident <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return ident
