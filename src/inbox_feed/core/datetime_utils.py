"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

__all__ = [
    "EPOCH",
    "ensure_utc",
    "parse_header_datetime",
    "serialize_datetime",
]

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def serialize_datetime(value: datetime) -> str:
    """Serialise ``value`` to an RFC 3339 timestamp."""
    normalized = ensure_utc(value) or value
    return normalized.isoformat().replace("+00:00", "Z")


def parse_header_datetime(header_value: str | None) -> datetime | None:
    """Parse an RFC 5322 ``Date`` header, returning ``None`` when unusable."""
    if not header_value:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(header_value))
    except (TypeError, ValueError, IndexError):
        return None
