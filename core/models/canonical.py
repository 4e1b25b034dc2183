"""Core canonical data models for lunch orders, snapshots and invoices.

These models represent order ledger rows, derived aggregates and the
LLM-extracted invoice summary in one standardized shape that is independent
of where the data came from (spreadsheet rows, sqlite rows, LLM JSON).

Spreadsheet- and API-specific field mappings are handled in /connectors/.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


DATE_FORMAT = "%Y/%m/%d"


# =============================================================================
# Value Parsers (handle various input formats from sheets and LLM extraction)
# =============================================================================

def _parse_int(value):
    """Parse integer from various formats ("13,600", "13600円", "¥13,600", 12.0)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        for token in (",", "¥", "￥", "円", "個"):
            s = s.replace(token, "")
        if s == "":
            return None
        return int(float(s))
    return value


def _parse_count(value):
    """Parse an order count; absent, non-numeric or non-positive counts become 1."""
    try:
        count = _parse_int(value)
    except (TypeError, ValueError):
        return 1
    if not isinstance(count, int) or count < 1:
        return 1
    return count


def _parse_date(value):
    """Parse date from the formats the ledger and the LLM produce."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in (DATE_FORMAT, "%Y-%m-%d", "%Y.%m.%d", "%Y/%m/%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {s}")
    return value


def _parse_target_month(value):
    """Normalize "2025-12", "2025/12", "2025.12" and "2025年12月" to "2025/12"."""
    if value is None:
        return None
    s = str(value).strip().replace("年", "/").replace("月", "")
    for sep in ("-", "."):
        s = s.replace(sep, "/")
    parts = [p for p in s.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Cannot parse target month: {value}")
    return f"{int(parts[0]):04d}/{int(parts[1]):02d}"


def format_date(value: date) -> str:
    """Canonical date string (YYYY/MM/DD) used in keys, snapshots and sheets."""
    return value.strftime(DATE_FORMAT)


# Annotated types for automatic parsing
IntValue = Annotated[int, BeforeValidator(_parse_int)]
CountValue = Annotated[int, BeforeValidator(_parse_count)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]
MonthValue = Annotated[str, BeforeValidator(_parse_target_month)]


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Orders
# =============================================================================

class SizeCategory(str, Enum):
    """Normalized portion size of a lunch order."""
    LARGE = "large"
    REGULAR = "regular"
    SMALL = "small"


class OrderRecord(CanonicalBase):
    """One line of a lunch order for one person on one date."""
    date: DateValue
    person: str = Field(..., alias="name")
    size: str = SizeCategory.REGULAR.value
    count: CountValue = 1

    @property
    def date_key(self) -> str:
        return format_date(self.date)


class SizeCounts(CanonicalBase):
    """Order counts per size category for a single date (or month)."""
    large: int = 0
    regular: int = 0
    small: int = 0

    def get(self, size: SizeCategory) -> int:
        return getattr(self, size.value)

    def add(self, size: SizeCategory, count: int) -> None:
        setattr(self, size.value, self.get(size) + count)

    @property
    def total(self) -> int:
        return self.large + self.regular + self.small


# date -> counts per size; dates without orders are absent, never zero-filled
AggregatedOrders = Dict[date, SizeCounts]


# =============================================================================
# Change Detection
# =============================================================================

class ChangeType(str, Enum):
    ADDED = "added"
    CANCELLED = "cancelled"


class OrderChangeEntry(CanonicalBase):
    """An order line that appeared in or disappeared from a snapshot."""
    date: DateValue
    person: str
    size: SizeCategory
    count: int
    change_type: ChangeType


class QuantityChange(CanonicalBase):
    """Net unit change for one (date, size) group, independent of person."""
    date: DateValue
    size: SizeCategory
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before


class ChangeSet(CanonicalBase):
    """Result of comparing a previous snapshot against the current orders."""
    added: List[OrderChangeEntry] = Field(default_factory=list)
    cancelled: List[OrderChangeEntry] = Field(default_factory=list)
    quantity_changes: List[QuantityChange] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.cancelled)


# =============================================================================
# Invoices
# =============================================================================

class InvoiceSummary(CanonicalBase):
    """Monthly totals, either extracted from a vendor invoice or computed locally.

    Field aliases match the camelCase keys the extraction prompt asks for.
    """
    target_month: MonthValue = Field(..., alias="targetMonth")
    count_large: IntValue = Field(0, alias="countLarge")
    count_regular: IntValue = Field(0, alias="countRegular")
    count_small: IntValue = Field(0, alias="countSmall")
    total_count: Optional[IntValue] = Field(None, alias="totalCount")
    unit_price: Optional[IntValue] = Field(None, alias="unitPrice")
    size_prices: Optional[Dict[SizeCategory, int]] = Field(None, alias="sizePrices")
    total_amount: IntValue = Field(..., alias="totalAmount")

    @model_validator(mode="after")
    def _fill_total_count(self) -> "InvoiceSummary":
        if self.total_count is None:
            self.total_count = self.count_large + self.count_regular + self.count_small
        return self


class MenuItem(CanonicalBase):
    """A dated menu entry extracted from a vendor menu PDF."""
    date: DateValue
    store_name: str = ""
    menu: str = ""


# =============================================================================
# Mail / chat payloads
# =============================================================================

class Attachment(CanonicalBase):
    """A file attached to a mail message or a draft."""
    name: str
    content: bytes
    mime_type: str = "application/pdf"
