"""
Date and month arithmetic for sheet names and template labels.

Nothing here reads the wall clock directly: callers pass ``today`` (usually
``workspace.clock().date()``) so every helper is reproducible under a fixed
clock in tests.
"""
import calendar
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from dateutil import parser as dateparser

from .config import TIMEZONE

Clock = Callable[[], datetime]

MONTHS = [calendar.month_name[i] for i in range(1, 13)]
SHORT_MONTHS = [m[:3] for m in MONTHS]


def system_clock() -> datetime:
    return datetime.now(ZoneInfo(TIMEZONE))


def fixed_clock(at: datetime) -> Clock:
    return lambda: at


def current_dates(today: date) -> tuple[int, int, int]:
    """(day of month, 0-based month, year), same shape the sheets logic was written against."""
    return today.day, today.month - 1, today.year


def _parse(datestring: str, today: date) -> date:
    if not isinstance(datestring, str):
        raise TypeError("There is some errors in converting to string format!")
    default = datetime(today.year, today.month, 1)
    return dateparser.parse(datestring, default=default).date()


def month_name(today: date, datestring: str = "") -> str:
    if not datestring:
        return MONTHS[today.month - 1]
    return MONTHS[_parse(datestring, today).month - 1]


def short_month(today: date, datestring: str = "") -> str:
    return month_name(today, datestring)[:3]


def year_of(today: date, datestring: str = "") -> str:
    if not datestring:
        return str(today.year)
    return str(_parse(datestring, today).year)


def days_in_month(month: str, year: int) -> int:
    if not isinstance(month, str):
        raise TypeError("There is some errors in converting to string format!")
    key = month.strip()[:3].title()
    if key not in SHORT_MONTHS:
        raise ValueError(f"Month is not in the correct name {month}")
    return calendar.monthrange(year, SHORT_MONTHS.index(key) + 1)[1]


def next_month(today: date) -> tuple[str, int]:
    """Long name and year of the month after ``today``."""
    if today.month == 12:
        return MONTHS[0], today.year + 1
    return MONTHS[today.month], today.year


def next_year(today: date) -> int:
    return today.year + 1


def year_end(today: date) -> date:
    # yearly rollover fires ahead of the holidays
    return date(today.year, 12, 10)


def date_label(today: date, datestring: str = "") -> str:
    """'2026-06-01' / '1 June' -> '1 Jun'; empty -> today."""
    d = today if not datestring else _parse(datestring, today)
    return f"{d.day} {SHORT_MONTHS[d.month - 1]}"


def individual_sheet_title(month: str, year: int) -> str:
    return f"{month[:3]} {str(year)[2:]}"


def individual_tab_year(today: date, month: str) -> int:
    """Year of the ``{Mon} {yy}`` tab for ``month``. January seen from December is next year's."""
    if today.month == 12 and month.strip()[:3].title() == SHORT_MONTHS[0]:
        return today.year + 1
    return today.year


def month_labels(month: str, year: int, with_year: bool = False) -> list[str]:
    n = days_in_month(month, year)
    suffix = f" {year}" if with_year else ""
    return [f"{i} {month[:3]}{suffix}" for i in range(1, n + 1)]


def elapsed_ms(start: datetime, now: Optional[datetime] = None, clock: Clock = system_clock) -> float:
    now = now or clock()
    return (now - start).total_seconds() * 1000.0
