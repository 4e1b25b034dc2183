"""Snapshot store contract.

A snapshot is the list of order lines for one period key at the moment the
weekly order was sent (or the last time a change was committed).

Contract:
- save(period_key, records) replaces every stored row for period_key; rows
  are never merged with what was there before.
- load(period_key) returns None when nothing is stored for period_key, and a
  non-empty list otherwise. It never returns an empty list.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from core.models import OrderRecord
from orders.sizes import normalize_size


class SnapshotStore(ABC):
    """Persistence for order snapshots keyed by period."""

    @abstractmethod
    def save(self, period_key: str, records: Iterable[OrderRecord]) -> int:
        """Replace the snapshot for period_key. Returns the number of rows written."""
        ...

    @abstractmethod
    def load(self, period_key: str) -> Optional[List[OrderRecord]]:
        """Return the snapshot for period_key, or None when there is none."""
        ...

    def exists(self, period_key: str) -> bool:
        return self.load(period_key) is not None


def snapshot_rows(records: Iterable[OrderRecord]) -> List[OrderRecord]:
    """Copy records with sizes normalized, as they are persisted."""
    return [
        OrderRecord(
            date=record.date,
            person=record.person,
            size=normalize_size(record.size).value,
            count=record.count,
        )
        for record in records
    ]


class InMemorySnapshotStore(SnapshotStore):
    """Process-local store; used for dry runs and tests."""

    def __init__(self):
        self._rows: Dict[str, List[OrderRecord]] = {}
        self.saved_at: Dict[str, datetime] = {}

    def save(self, period_key: str, records: Iterable[OrderRecord]) -> int:
        rows = snapshot_rows(records)
        self._rows.pop(period_key, None)
        if rows:
            self._rows[period_key] = rows
            self.saved_at[period_key] = datetime.now()
        return len(rows)

    def load(self, period_key: str) -> Optional[List[OrderRecord]]:
        rows = self._rows.get(period_key)
        if not rows:
            return None
        return [row.model_copy() for row in rows]

    def period_keys(self) -> List[str]:
        return sorted(self._rows)
