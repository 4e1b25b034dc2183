"""Aggregation of order records by date x size and by month x size."""

from typing import Iterable, Optional

from core.models import AggregatedOrders, InvoiceSummary, OrderRecord, PriceTable, SizeCounts
from core.observability import get_logger
from orders.calendar import target_month_of
from orders.sizes import normalize_size

logger = get_logger(__name__)


def aggregate_by_date_and_size(records: Iterable[OrderRecord]) -> AggregatedOrders:
    """Sum counts per (date, normalized size).

    Dates without records are absent from the result, so callers must treat a
    missing date as all zeros.
    """
    aggregated: AggregatedOrders = {}
    for record in records:
        counts = aggregated.setdefault(record.date, SizeCounts())
        counts.add(normalize_size(record.size), record.count)
    return aggregated


def count_month(records: Iterable[OrderRecord], target_month: str) -> SizeCounts:
    """Sum counts per size for records dated inside target_month (YYYY/MM)."""
    counts = SizeCounts()
    for record in records:
        if target_month_of(record.date) != target_month:
            continue
        counts.add(normalize_size(record.size), record.count)
    return counts


def aggregate_month(
    records: Iterable[OrderRecord],
    target_month: str,
    price_table: Optional[PriceTable],
) -> InvoiceSummary:
    """Compute the system-side invoice totals for one month.

    The price tier is selected by the month's total count. With no orders
    (or no price table) the unit price and amount are zero.
    """
    counts = count_month(records, target_month)
    total_count = counts.total

    tier = price_table.select_tier(total_count) if price_table else None

    unit_price = None
    size_prices = None
    total_amount = 0
    if tier is None:
        unit_price = 0
    else:
        total_amount = tier.amount_for(counts)
        if tier.size_prices is not None:
            size_prices = dict(tier.size_prices)
        else:
            unit_price = tier.unit_price or 0

    summary = InvoiceSummary(
        target_month=target_month,
        count_large=counts.large,
        count_regular=counts.regular,
        count_small=counts.small,
        total_count=total_count,
        unit_price=unit_price,
        size_prices=size_prices,
        total_amount=total_amount,
    )
    logger.debug(
        f"Aggregated {target_month}: large={counts.large} regular={counts.regular} "
        f"small={counts.small} total={total_count} amount={total_amount}",
        extra_fields={"tier": tier.label if tier else None},
    )
    return summary
