"""Order records: size normalization, weekly calendar and aggregation."""

from orders.sizes import normalize_size, SIZE_LABELS, SIZE_ORDER
from orders.calendar import (
    current_weekdays,
    next_weekdays,
    month_days,
    month_key,
    target_month_of,
    group_dates_by_month,
    week_of_month,
    is_weekday,
    generate_period_key,
)
from orders.aggregation import aggregate_by_date_and_size, aggregate_month, count_month

__all__ = [
    "normalize_size",
    "SIZE_LABELS",
    "SIZE_ORDER",
    "current_weekdays",
    "next_weekdays",
    "month_days",
    "month_key",
    "target_month_of",
    "group_dates_by_month",
    "week_of_month",
    "is_weekday",
    "generate_period_key",
    "aggregate_by_date_and_size",
    "aggregate_month",
    "count_month",
]
