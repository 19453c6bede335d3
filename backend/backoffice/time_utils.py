# Overview: UTC clock, ISO-8601 helpers and calendar-month arithmetic.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD". None / "" -> None; anything else raises ValueError."""
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with a trailing 'Z', second precision.

    Naive values are stored as UTC, so they are tagged rather than converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def month_bounds(month: int, year: int) -> tuple[date, date]:
    """
    Half-open [first day of month, first day of next month).

    December rolls over into January of the following year.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    start = date(year, month, 1)
    next_month, next_year = shift_month(month, year, 1)
    return start, date(next_year, next_month, 1)


def shift_month(month: int, year: int, delta: int) -> tuple[int, int]:
    """Move (month, year) by delta months."""
    index = year * 12 + (month - 1) + delta
    return index % 12 + 1, index // 12
