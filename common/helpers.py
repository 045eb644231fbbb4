"""
FreshCart - Shared Helpers
============================
Pure utility functions with NO database or module dependencies.
"""

import calendar
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

CENT = Decimal("0.01")


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def to_decimal(value) -> Optional[Decimal]:
    """Convert a DB/number value to Decimal without float noise. None stays None."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """Round to cents (half up). None counts as zero."""
    d = to_decimal(value)
    if d is None:
        return Decimal("0.00")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse YYYY-MM-DD. Returns None for empty input; raises ValueError on garbage."""
    if value is None or not str(value).strip():
        return None
    return date.fromisoformat(str(value).strip())


def month_range(year: int, month: int) -> Tuple[date, date]:
    """First and last day (inclusive) of a calendar month."""
    if not 1 <= month <= 12:
        raise ValueError(f"invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
