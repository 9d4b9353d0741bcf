from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings
from errors import TransactionValidationError


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise TransactionValidationError("Month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise TransactionValidationError("Year is out of range")
    first = date(year, month, 1)
    if month == 12:
        end = date(year, 12, 31)
    else:
        end = date(year, month + 1, 1) - date.resolution
    return Period(f"{year:04d}-{month:02d}", first, end)


def current_month_period(today: Optional[date] = None) -> Period:
    today = today or local_today()
    return month_period(today.year, today.month)
