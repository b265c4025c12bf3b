from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def validate_date_range(start: datetime | None, due: datetime | None) -> None:
    start_utc = ensure_utc(start)
    due_utc = ensure_utc(due)
    if start_utc is None or due_utc is None:
        return
    if due_utc < start_utc:
        raise ValueError("dueDate must not be earlier than startDate")
