"""
Timestamp helpers.

Every stored instant is a timezone-aware UTC datetime. Calendar-only values
(due dates, billing period bounds) are ISO ``YYYY-MM-DD`` strings.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

# Fields that hold instants regardless of the collection they live in
TIMESTAMP_FIELDS = {
    "created_at",
    "updated_at",
    "submitted_at",
    "reviewed_at",
    "paid_at",
    "payment_date",
    "proof_submitted_at",
    "overdue_at",
    "assigned_at",
    "status_updated_at",
    "balance_updated_at",
    "checked_out_at",
    "occupied_date",
    "vacated_date",
    "lease_start",
    "lease_end",
    "application_date",
    "last_updated",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """Coerce a stored value (datetime, ISO string, date) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_utc_datetime(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def normalize_timestamps(data: dict) -> dict:
    """Coerce the known timestamp fields of a document (recursively for nested maps)."""
    normalized = {}
    for key, value in data.items():
        if key in TIMESTAMP_FIELDS:
            coerced = to_utc_datetime(value)
            normalized[key] = coerced if coerced is not None else value
        elif isinstance(value, dict):
            normalized[key] = normalize_timestamps(value)
        else:
            normalized[key] = value
    return normalized


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse a calendar date stored as ``YYYY-MM-DD`` (or a full ISO timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def sort_key(value: Any) -> datetime:
    """Sort key for optional timestamps; missing values sort as the epoch."""
    return to_utc_datetime(value) or datetime.fromtimestamp(0, tz=timezone.utc)
