"""Monthly order-card grids and the weekly block writer."""

from order_card.grid import OrderCardGrid, InMemoryGrid
from order_card.writer import (
    OrderCardLayout,
    CardChange,
    week_base_row,
    day_column,
    build_order_matrix,
    read_previous_values,
    compute_card_changes,
    write_week,
    write_orders_by_month,
)

__all__ = [
    "OrderCardGrid",
    "InMemoryGrid",
    "OrderCardLayout",
    "CardChange",
    "week_base_row",
    "day_column",
    "build_order_matrix",
    "read_previous_values",
    "compute_card_changes",
    "write_week",
    "write_orders_by_month",
]
