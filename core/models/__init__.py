"""Core data models - canonical order, change and invoice types.

This package contains all canonical data models that are intentionally
independent of any specific spreadsheet, mail or chat provider.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    IntValue,
    CountValue,
    DateValue,
    MonthValue,
    DATE_FORMAT,
    format_date,

    # Orders
    SizeCategory,
    OrderRecord,
    SizeCounts,
    AggregatedOrders,

    # Changes
    ChangeType,
    OrderChangeEntry,
    QuantityChange,
    ChangeSet,

    # Invoices / menus
    InvoiceSummary,
    MenuItem,
    Attachment,
)

from core.models.pricing import (
    DEFAULT_TIER_BOUNDS,
    PriceTier,
    PriceTable,
)

from core.models.refs import DataReference

__all__ = [
    "CanonicalBase",
    "IntValue",
    "CountValue",
    "DateValue",
    "MonthValue",
    "DATE_FORMAT",
    "format_date",
    "SizeCategory",
    "OrderRecord",
    "SizeCounts",
    "AggregatedOrders",
    "ChangeType",
    "OrderChangeEntry",
    "QuantityChange",
    "ChangeSet",
    "InvoiceSummary",
    "MenuItem",
    "Attachment",
    "DEFAULT_TIER_BOUNDS",
    "PriceTier",
    "PriceTable",
    "DataReference",
]
