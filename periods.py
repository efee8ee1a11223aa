from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

MIN_YEAR = 2000
MAX_YEAR = 2100

DEFAULT_TREND_MONTHS = 6
MAX_TREND_MONTHS = 12


@dataclass(frozen=True)
class MonthPeriod:
    year: int
    month: int
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).date()


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_period(year: int, month: int) -> MonthPeriod:
    return MonthPeriod(year, month, month_start(year, month), month_end(year, month))


def resolve_month(
    month: Optional[int],
    year: Optional[int],
    *,
    today: Optional[date] = None,
) -> MonthPeriod:
    """Fill in whichever of month/year is omitted or out of range from ``today``."""
    today = today or local_today()
    resolved_month = month if month is not None and 1 <= month <= 12 else today.month
    resolved_year = (
        year if year is not None and MIN_YEAR <= year <= MAX_YEAR else today.year
    )
    return month_period(resolved_year, resolved_month)


def is_past_month(month: int, year: int, *, today: Optional[date] = None) -> bool:
    today = today or local_today()
    return (year, month) < (today.year, today.month)


def normalize_trend_months(months: Optional[int]) -> int:
    if months is None or months < 1:
        return DEFAULT_TREND_MONTHS
    return min(months, MAX_TREND_MONTHS)


def trend_start(months: Optional[int], *, today: Optional[date] = None) -> date:
    """First day of the month ``months - 1`` months before ``today``."""
    today = today or local_today()
    return add_months(today.replace(day=1), -(normalize_trend_months(months) - 1))
