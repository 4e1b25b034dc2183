"""Snapshot differ.

Compares the order lines saved at send time with the current ledger:
- added / cancelled: set difference on the key date|person|size|count
- quantity_changes: per (date, size) unit totals, independent of person

A count change for the same person, date and size therefore shows up as one
cancellation plus one addition. Two identical lines on the same side share a
key and collapse into one entry.
"""

from typing import Dict, Iterable, List, Tuple

from core.models import (
    ChangeSet,
    ChangeType,
    OrderChangeEntry,
    OrderRecord,
    QuantityChange,
    SizeCategory,
    format_date,
)
from core.observability import get_logger
from orders.sizes import normalize_size

logger = get_logger(__name__)


def order_key(record: OrderRecord) -> str:
    """Identity of an order line: date|person|normalized size|count."""
    size = normalize_size(record.size)
    return f"{format_date(record.date)}|{record.person}|{size.value}|{record.count}"


def _index(records: Iterable[OrderRecord], side: str) -> Dict[str, OrderRecord]:
    indexed: Dict[str, OrderRecord] = {}
    duplicates = 0
    for record in records:
        key = order_key(record)
        if key in indexed:
            duplicates += 1
        indexed[key] = record
    if duplicates:
        logger.debug(f"{duplicates} duplicate order line(s) collapsed in {side} snapshot")
    return indexed


def _entry(record: OrderRecord, change_type: ChangeType) -> OrderChangeEntry:
    return OrderChangeEntry(
        date=record.date,
        person=record.person,
        size=normalize_size(record.size),
        count=record.count,
        change_type=change_type,
    )


def _quantity_changes(
    previous: List[OrderRecord],
    current: List[OrderRecord],
) -> List[QuantityChange]:
    totals: Dict[Tuple, List[int]] = {}
    for record in previous:
        key = (record.date, normalize_size(record.size))
        totals.setdefault(key, [0, 0])[0] += record.count
    for record in current:
        key = (record.date, normalize_size(record.size))
        totals.setdefault(key, [0, 0])[1] += record.count

    return [
        QuantityChange(date=d, size=size, before=before, after=after)
        for (d, size), (before, after) in totals.items()
        if before != after
    ]


def diff(previous: Iterable[OrderRecord], current: Iterable[OrderRecord]) -> ChangeSet:
    """Compare two order snapshots for the same period."""
    previous = list(previous)
    current = list(current)

    previous_map = _index(previous, "previous")
    current_map = _index(current, "current")

    added = [
        _entry(record, ChangeType.ADDED)
        for key, record in current_map.items()
        if key not in previous_map
    ]
    cancelled = [
        _entry(record, ChangeType.CANCELLED)
        for key, record in previous_map.items()
        if key not in current_map
    ]
    quantity_changes = _quantity_changes(previous, current)

    logger.debug(
        f"Diff result: added={len(added)} cancelled={len(cancelled)} "
        f"quantity_changes={len(quantity_changes)}"
    )
    return ChangeSet(added=added, cancelled=cancelled, quantity_changes=quantity_changes)


def sort_quantity_changes(changes: Iterable[QuantityChange]) -> List[QuantityChange]:
    """Display order: by date, then large/regular/small."""
    rank = {SizeCategory.LARGE: 0, SizeCategory.REGULAR: 1, SizeCategory.SMALL: 2}
    return sorted(changes, key=lambda c: (c.date, rank[c.size]))
