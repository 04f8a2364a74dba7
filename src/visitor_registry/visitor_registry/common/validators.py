from __future__ import annotations

from typing import Any

from ..core.exceptions import ValidationError


def is_blank(value: Any) -> bool:
    """Absent, None and whitespace-only strings are all treated as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def require_non_empty(value: str, field_name: str) -> str:
    if is_blank(value):
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()
