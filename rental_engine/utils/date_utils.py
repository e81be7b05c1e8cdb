"""Date manipulation utilities"""

import re
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def month_key(day: date) -> str:
    """Format a date's month as ``YYYY-MM``"""
    return f"{day.year:04d}-{day.month:02d}"


def is_month_key(value: str) -> bool:
    return bool(_MONTH_KEY_RE.match(value or ""))


def parse_month_key(value: str) -> date:
    """First day of the month named by ``YYYY-MM``. Raises ValueError on bad input."""
    if not is_month_key(value):
        raise ValueError(f"Invalid month format {value!r}. Use YYYY-MM")
    year, month = value.split("-")
    return date(int(year), int(month), 1)


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of the target month"""
    return day + relativedelta(months=months)


def local_date(moment: datetime, tz) -> date:
    """Calendar date of an aware timestamp in the business timezone"""
    return moment.astimezone(tz).date()
