"""
Calendar helpers: months (YYYY-MM) and calendar days in the business timezone.

Ranges are closed [start, end] and returned as UTC ISO strings, the format
visit dates are stored in.
"""

import calendar
import re
from datetime import date, datetime
from typing import Tuple, Union

from config import BUSINESS_TZ, to_iso
from services.errors import ValidationError

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

# Local midnights of years 1 and 9999 fall outside datetime once shifted to UTC
MIN_YEAR = 2
MAX_YEAR = 9998


def _check_year(year: int, field: str) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"{field} must be between years {MIN_YEAR} and {MAX_YEAR}")


def parse_month(month: str) -> Tuple[int, int]:
    """'2024-06' -> (2024, 6)"""
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise ValidationError("Month must be in YYYY-MM format")
    _check_year(int(match.group(1)), "Month")
    return int(match.group(1)), int(match.group(2))


def month_range(month: str) -> Tuple[str, str]:
    """Day 1 00:00:00.000 -> last day 23:59:59.999, business timezone"""
    year, mon = parse_month(month)
    last_day = calendar.monthrange(year, mon)[1]
    start = datetime(year, mon, 1, 0, 0, 0, 0, tzinfo=BUSINESS_TZ)
    end = datetime(year, mon, last_day, 23, 59, 59, 999000, tzinfo=BUSINESS_TZ)
    return to_iso(start), to_iso(end)


def parse_datetime(value: Union[str, datetime, date], field: str = "date") -> datetime:
    """
    Aware datetime from an ISO string or datetime.
    Naive values are wall-clock times in the business timezone.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid {field} format")
    _check_year(dt.year, field)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BUSINESS_TZ)
    return dt


def local(dt: datetime) -> datetime:
    return dt.astimezone(BUSINESS_TZ)


def month_of(dt: datetime) -> str:
    return local(dt).strftime("%Y-%m")


def day_of(dt: datetime) -> str:
    return local(dt).strftime("%Y-%m-%d")


def day_range(dt: datetime) -> Tuple[str, str]:
    """Calendar day containing dt, 00:00:00.000 -> 23:59:59.999"""
    day = local(dt)
    start = day.replace(hour=0, minute=0, second=0, microsecond=0)
    end = day.replace(hour=23, minute=59, second=59, microsecond=999000)
    return to_iso(start), to_iso(end)
