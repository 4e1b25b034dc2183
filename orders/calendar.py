"""Date helpers for weekly order periods.

Weeks are Monday-Friday. Dates travel as ``datetime.date`` and are rendered
as ``YYYY/MM/DD`` only at the edges (sheet rows, keys, messages).
"""

import math
from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, Iterable, List

from core.models import format_date

WEEKDAY_COUNT = 5
WEEKDAY_NAMES_JA = ["月", "火", "水", "木", "金", "土", "日"]


def current_weekdays(base: date) -> List[date]:
    """Monday-Friday of the week containing base."""
    monday = base - timedelta(days=base.weekday())
    return [monday + timedelta(days=i) for i in range(WEEKDAY_COUNT)]


def next_weekdays(base: date) -> List[date]:
    """Monday-Friday of the following week. A Monday base yields the next Monday."""
    days_until_monday = (7 - base.weekday()) % 7 or 7
    monday = base + timedelta(days=days_until_monday)
    return [monday + timedelta(days=i) for i in range(WEEKDAY_COUNT)]


def month_days(target_month: str) -> List[date]:
    """Every calendar day of a YYYY/MM month."""
    year, month = (int(p) for p in target_month.split("/"))
    first = date(year, month, 1)
    following = date(year + (month // 12), month % 12 + 1, 1)
    return [first + timedelta(days=i) for i in range((following - first).days)]


def month_key(value: date) -> str:
    """Month key used in order-card file names (YYYY.MM)."""
    return f"{value.year:04d}.{value.month:02d}"


def target_month_of(value: date) -> str:
    """Invoice month key (YYYY/MM)."""
    return f"{value.year:04d}/{value.month:02d}"


def group_dates_by_month(dates: Iterable[date]) -> Dict[str, List[date]]:
    """Split a week's dates by calendar month, keeping input order."""
    grouped: Dict[str, List[date]] = OrderedDict()
    for d in dates:
        grouped.setdefault(month_key(d), []).append(d)
    return grouped


def week_of_month(value: date) -> int:
    """1-5: which seven-day block of its month the date falls in."""
    return math.ceil(value.day / 7)


def is_weekday(value: date) -> bool:
    return value.weekday() < WEEKDAY_COUNT


def generate_period_key(start: date, end: date) -> str:
    """Snapshot key for a week, e.g. 2025.12.15-12.19.

    Only month and day of the end date are kept; weeks never span a year
    boundary in this schedule.
    """
    return f"{start.year:04d}.{start.month:02d}.{start.day:02d}-{end.month:02d}.{end.day:02d}"


def format_month_day_with_weekday(value: date) -> str:
    """12/16(火) style label for messages."""
    return f"{value.month}/{value.day}({WEEKDAY_NAMES_JA[value.weekday()]})"


def format_period(start: date, end: date) -> str:
    return f"{format_date(start)}〜{format_date(end)}"
