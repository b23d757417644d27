"""
Calendar (dim_date) rows
========================
date_key contract: integer YYYYMMDD, e.g. date(2025, 12, 1) -> 20251201.
Other tools join on this value, so it is derived arithmetically, never formatted
through locale-dependent strftime.
"""
import calendar
from datetime import date, timedelta

from app.core.exceptions import InvalidDateKeyError

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def date_key_of(d: date) -> int:
    return d.year * 10000 + d.month * 100 + d.day


def date_from_key(date_key: int) -> date:
    """20251201 -> date(2025, 12, 1). Raises InvalidDateKeyError for non-dates (e.g. 20250231)."""
    try:
        key = int(date_key)
        return date(key // 10000, key // 100 % 100, key % 100)
    except (TypeError, ValueError) as e:
        raise InvalidDateKeyError(date_key) from e


def quarter_of(month: int) -> int:
    return (month - 1) // 3 + 1


def date_row(d: date) -> dict:
    """dim_date column values for one calendar day."""
    last_day = calendar.monthrange(d.year, d.month)[1]
    return {
        "date_key": date_key_of(d),
        "full_date": d,
        "year_num": d.year,
        "month_num": d.month,
        "day_num": d.day,
        "quarter": quarter_of(d.month),
        "month_name": MONTH_NAMES[d.month - 1],
        "is_month_end": d.day == last_day,
    }


def build_date_rows(start: date, end: date) -> list[dict]:
    """dim_date rows for every day in [start, end] inclusive."""
    if end < start:
        return []
    return [date_row(start + timedelta(days=i)) for i in range((end - start).days + 1)]
