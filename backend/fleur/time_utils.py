# Overview: UTC time helpers. Stored datetimes are naive UTC; the API speaks ISO-8601 with 'Z'.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC 'now' used for every stored timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a query or body timestamp into naive UTC.

    Empty input gives None. Offsets (including 'Z') are converted to UTC;
    values without an offset are taken as UTC already. Raises ValueError on
    anything fromisoformat rejects.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """'2024-02-14T08:30:00Z' style, second precision. Naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def check_date_parts(month: Optional[int] = None, day: Optional[int] = None) -> None:
    """Range check for the independent month/day filters (ValueError when out of range)."""
    if month is not None and not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    if day is not None and not 1 <= day <= 31:
        raise ValueError("day must be between 1 and 31")
