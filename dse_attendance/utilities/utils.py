"""Utility functions for the DSE leave tracker."""
import calendar
import re
from datetime import date, datetime
from typing import Iterable, List, Optional

from dse_attendance.utilities import config
from dse_attendance.utilities.models import DateWindow

_DATE_KEY_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2})$")
_MONTH_NUMBERS = {abbr.lower(): index for index, abbr in enumerate(config.MONTH_ABBREVIATIONS, 1)}


def format_date_key(day: date, zero_pad: bool = True) -> str:
    """
    Format a date as an attendance column name.

    Args:
        day: Date to format
        zero_pad: Pad the day to two digits ("02-Sep-25") as new columns are
            named; False gives the older "2-Sep-25" form

    Returns:
        Column name in D-Mon-YY form
    """
    day_part = f"{day.day:02d}" if zero_pad else str(day.day)
    month_part = config.MONTH_ABBREVIATIONS[day.month - 1]
    return f"{day_part}-{month_part}-{day.year % 100:02d}"


def parse_date_key(key: str) -> Optional[date]:
    """
    Parse an attendance column name like "2-Jun-25" or "02-Jun-25".

    Returns:
        The date, or None when the key is not a D-Mon-YY column
    """
    match = _DATE_KEY_PATTERN.match(str(key).strip())
    if not match:
        return None

    day_part, month_part, year_part = match.groups()
    month = _MONTH_NUMBERS.get(month_part.lower())
    if month is None:
        return None

    try:
        return date(2000 + int(year_part), month, int(day_part))
    except ValueError:
        return None


def date_key_candidates(day: date) -> List[str]:
    """Column names that may hold `day`, zero-padded form first."""
    padded = format_date_key(day, zero_pad=True)
    plain = format_date_key(day, zero_pad=False)
    return [padded] if padded == plain else [padded, plain]


def resolve_date_column(columns: Iterable[str], day: date) -> Optional[str]:
    """
    Find the existing attendance column for a date.

    Args:
        columns: Column names of the attendance table
        day: Date to look up

    Returns:
        Matching column name, or None if the table has no column for that day
    """
    available = set(columns)
    for candidate in date_key_candidates(day):
        if candidate in available:
            return candidate
    return None


def create_month_window(month: Optional[int] = None, year: Optional[int] = None) -> DateWindow:
    """
    Create a date window covering one calendar month.

    Args:
        month: Month number 1-12 (defaults to the current month)
        year: Four-digit year (defaults to the current year)

    Returns:
        DateWindow instance
    """
    today = datetime.now().date()
    month = month or today.month
    year = year or today.year

    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    return DateWindow(start=first, end=last, description=first.strftime("%B %Y"))
