"""Date manipulation utilities"""

import calendar
from datetime import date
from typing import List
from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping to the last day of shorter months (Jan 31 + 1 -> Feb 28/29)"""
    return from_date + relativedelta(months=months)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling day-of-month anchors past the month end back to its last day"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def month_starts(start: date, end: date) -> List[date]:
    """First day of every month touched by [start, end] (inclusive)"""
    months = []
    current = date(start.year, start.month, 1)
    while current <= end:
        months.append(current)
        current = add_months(current, 1)
    return months
