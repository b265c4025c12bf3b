from __future__ import annotations

from kanban.errors import ValidationError


def require_text(raw: str | None, field: str, max_length: int) -> str:
    value = (raw or "").strip()
    if not value:
        raise ValidationError(f"{field} is required")
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def optional_text(raw: str | None) -> str:
    if raw is None:
        return ""
    return raw.strip()
