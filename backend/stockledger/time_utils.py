# Overview: UTC timestamps for ledger rows and their wire format.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from .errors import ValidationError


def utcnow() -> datetime:
    """Ledger clock: UTC, stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with a trailing 'Z', second precision.
    Naive values are UTC by convention.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_query_datetime(key: str, value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Query-string bound for occurred_at windows, returned as naive UTC.

    Accepts "YYYY-MM-DD" (start of day, or end of day when end_of_day is set)
    and full ISO-8601 with "Z" or an offset. Raises ValidationError otherwise.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    try:
        if len(raw) == 10:
            day = date.fromisoformat(raw)
            if end_of_day:
                return datetime(day.year, day.month, day.day, 23, 59, 59, 999999)
            return datetime(day.year, day.month, day.day)
        parsed = datetime.fromisoformat(raw[:-1] + "+00:00" if raw.endswith("Z") else raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date or datetime")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
