from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    """Business date used for order ages and birthdays."""
    return utcnow().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse "YYYY-MM-DD" (or a full ISO datetime, date part kept).

    - None / "" -> None
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) > 10:
        dt = parse_iso_datetime(s)
        return dt.date() if dt else None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()


DATE_PRESETS = (
    "this_month",
    "last_month",
    "this_quarter",
    "last_quarter",
    "this_year",
    "last_year",
    "all",
)


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


def date_range_preset(preset: str, on: date) -> tuple[Optional[date], Optional[date]]:
    """
    Inclusive (start, end) for a named reporting period containing `on`.

    "all" yields (None, None). Raises ValueError for an unknown preset.
    """
    if preset == "all":
        return None, None

    if preset in ("this_month", "last_month"):
        year, month = on.year, on.month
        if preset == "last_month":
            year, month = (year - 1, 12) if month == 1 else (year, month - 1)
        return date(year, month, 1), _month_end(year, month)

    if preset in ("this_quarter", "last_quarter"):
        year, quarter = on.year, (on.month - 1) // 3
        if preset == "last_quarter":
            year, quarter = (year - 1, 3) if quarter == 0 else (year, quarter - 1)
        first_month = quarter * 3 + 1
        return date(year, first_month, 1), _month_end(year, first_month + 2)

    if preset in ("this_year", "last_year"):
        year = on.year if preset == "this_year" else on.year - 1
        return date(year, 1, 1), date(year, 12, 31)

    raise ValueError(f"Unknown date preset '{preset}'")
