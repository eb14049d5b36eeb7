"""Small conversions shared by service serializers."""
from __future__ import annotations

from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from .errors import NotFoundError


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def iso(value: Optional[datetime | date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value.isoformat()


def money(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def parse_uuid(value: Any, what: str = "Record") -> UUID:
    """Parse an id path parameter; malformed ids are reported as not found."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise NotFoundError(f"{what} not found") from exc


__all__ = ["as_utc", "iso", "money", "parse_uuid"]
