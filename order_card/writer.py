"""Weekly order-card writer.

An order card is one spreadsheet per month. Each week of the month owns a
block of three rows (large, regular, small) starting at
FIRST_WEEK_BASE_ROW + (week - 1) * ROWS_PER_WEEK; each weekday owns a pair
of columns starting at COLUMN_OFFSET, and counts go in the first column of
the pair.

Writing a week always clears the whole block first and then writes the full
matrix, so re-running with the same orders reproduces the same cells.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Sequence

from pydantic import BaseModel

from core.models import AggregatedOrders, SizeCategory, SizeCounts, format_date
from core.observability import get_logger
from order_card.grid import OrderCardGrid
from orders.calendar import group_dates_by_month, is_weekday, week_of_month
from orders.sizes import SIZE_ORDER

logger = get_logger(__name__)


class OrderCardLayout:
    """Cell coordinates of the order-card template (1-based)."""
    FIRST_WEEK_BASE_ROW = 8
    ROWS_PER_WEEK = 5
    COLUMN_OFFSET = 4  # column D = Monday
    COLUMNS_PER_DAY = 2
    DAYS_PER_WEEK = 5
    SIZE_ROWS = len(SIZE_ORDER)
    BLOCK_COLUMNS = DAYS_PER_WEEK * COLUMNS_PER_DAY


class CardChange(BaseModel):
    """A cell whose value differs from what the card held before the write."""
    date: date
    size: SizeCategory
    previous: int
    current: int

    @property
    def delta(self) -> int:
        return self.current - self.previous


def week_base_row(week: int) -> int:
    """First (large) row of the block for week 1-5."""
    if not 1 <= week <= 5:
        raise ValueError(f"week of month must be 1-5, got {week}")
    return OrderCardLayout.FIRST_WEEK_BASE_ROW + (week - 1) * OrderCardLayout.ROWS_PER_WEEK


def day_column(value: date) -> int:
    """Sheet column for a weekday. Saturday and Sunday have no column."""
    if not is_weekday(value):
        raise ValueError(f"{format_date(value)} is not a weekday")
    return OrderCardLayout.COLUMN_OFFSET + value.weekday() * OrderCardLayout.COLUMNS_PER_DAY


def _cell_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(float(str(value).strip()))
    except ValueError:
        logger.warning(f"Non-numeric order-card cell: {value!r}")
        return 0


def _weekdays_only(dates: Iterable[date]) -> List[date]:
    kept = []
    for d in dates:
        if is_weekday(d):
            kept.append(d)
        else:
            logger.warning(f"{format_date(d)} is not a weekday; not written to the order card")
    return kept


def build_order_matrix(aggregated: AggregatedOrders, dates: Iterable[date]) -> List[List[Any]]:
    """3 x BLOCK_COLUMNS matrix for one week block; zero counts stay blank."""
    matrix: List[List[Any]] = [
        ["" for _ in range(OrderCardLayout.BLOCK_COLUMNS)]
        for _ in range(OrderCardLayout.SIZE_ROWS)
    ]
    for d in _weekdays_only(dates):
        counts = aggregated.get(d)
        if counts is None:
            continue
        col = day_column(d) - OrderCardLayout.COLUMN_OFFSET
        for row, size in enumerate(SIZE_ORDER):
            value = counts.get(size)
            if value > 0:
                matrix[row][col] = value
    return matrix


def read_previous_values(grid: OrderCardGrid, week: int, dates: Iterable[date]) -> Dict[date, SizeCounts]:
    """Counts currently on the card for each weekday in dates."""
    base_row = week_base_row(week)
    block = grid.read_values(
        base_row, OrderCardLayout.COLUMN_OFFSET,
        OrderCardLayout.SIZE_ROWS, OrderCardLayout.BLOCK_COLUMNS,
    )
    previous: Dict[date, SizeCounts] = {}
    for d in dates:
        if not is_weekday(d):
            continue
        col = day_column(d) - OrderCardLayout.COLUMN_OFFSET
        counts = SizeCounts()
        for row, size in enumerate(SIZE_ORDER):
            cells = block[row] if row < len(block) else []
            counts.add(size, _cell_int(cells[col] if col < len(cells) else ""))
        previous[d] = counts
    return previous


def compute_card_changes(
    previous: Dict[date, SizeCounts],
    current: AggregatedOrders,
    dates: Iterable[date],
) -> List[CardChange]:
    changes = []
    for d in dates:
        if not is_weekday(d):
            continue
        before = previous.get(d) or SizeCounts()
        after = current.get(d) or SizeCounts()
        for size in SIZE_ORDER:
            if before.get(size) != after.get(size):
                changes.append(CardChange(
                    date=d, size=size, previous=before.get(size), current=after.get(size),
                ))
    return changes


def write_week(grid: OrderCardGrid, aggregated: AggregatedOrders, dates: Sequence[date]) -> List[CardChange]:
    """Rewrite one week block of one month's card.

    Args:
        grid: The month's order card
        aggregated: Counts by date and size (may hold other dates too)
        dates: The week's dates that fall in this month

    Returns:
        Cells whose count differs from the value read before the write
    """
    if not dates:
        return []

    week = week_of_month(dates[0])
    base_row = week_base_row(week)
    previous = read_previous_values(grid, week, dates)

    grid.clear_range(
        base_row, OrderCardLayout.COLUMN_OFFSET,
        OrderCardLayout.SIZE_ROWS, OrderCardLayout.BLOCK_COLUMNS,
    )
    grid.write_values(base_row, OrderCardLayout.COLUMN_OFFSET, build_order_matrix(aggregated, dates))

    logger.info(
        f"Wrote week {week} of {grid.name or 'order card'}",
        extra_fields={"rows": f"{base_row}-{base_row + OrderCardLayout.SIZE_ROWS - 1}"},
    )
    return compute_card_changes(previous, aggregated, dates)


def write_orders_by_month(
    repository,
    aggregated: AggregatedOrders,
    dates: Iterable[date],
) -> Dict[str, List[CardChange]]:
    """Write a week that may span two months into each month's card.

    Args:
        repository: OrderCardRepository that opens a card by YYYY.MM
        aggregated: Counts by date and size
        dates: The week's dates

    Returns:
        Changes per YYYY.MM month key. A month whose card is missing is
        logged and left out.
    """
    results: Dict[str, List[CardChange]] = {}
    for key, month_dates in group_dates_by_month(dates).items():
        grid = repository.open_month(key)
        if grid is None:
            logger.error(f"Order card for {key} not found")
            continue
        results[key] = write_week(grid, aggregated, month_dates)
    return results
