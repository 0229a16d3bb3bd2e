from __future__ import annotations

from typing import Any, Mapping

from ..core.exceptions import ErrorCode, ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required", code=ErrorCode.MISSING_FIELD, field=field_name)
    return str(value).strip()


def require_fields(payload: Mapping[str, Any], *names: str) -> None:
    missing = [n for n in names if payload.get(n) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            code=ErrorCode.MISSING_FIELD,
            fields=missing,
        )


def require_period(year: int, month: int) -> tuple[int, int]:
    year, month = int(year), int(month)
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month {month}", code=ErrorCode.MISSING_FIELD, field="month")
    return year, month
