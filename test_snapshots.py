"""
Snapshot store tests.

Both stores must replace a period on save (never merge) and report a
missing period as None, never as an empty list.
"""

import tempfile
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest


def rec(person, size="regular", count=1, d=date(2025, 12, 16)):
    from core.models import OrderRecord
    return OrderRecord(date=d, person=person, size=size, count=count)


def as_tuples(records):
    return sorted((r.date, r.person, r.size, r.count) for r in records)


@pytest.fixture
def sqlite_store():
    from snapshots.db import SqliteSnapshotStore
    with tempfile.TemporaryDirectory() as tmp:
        yield SqliteSnapshotStore(Path(tmp) / "snapshots.db")


@pytest.fixture
def memory_store():
    from snapshots.store import InMemorySnapshotStore
    return InMemorySnapshotStore()


@pytest.fixture(params=["sqlite", "memory"])
def store(request, sqlite_store, memory_store):
    return sqlite_store if request.param == "sqlite" else memory_store


class TestSnapshotContract:
    """Behaviour shared by every SnapshotStore."""

    def test_missing_period_is_none(self, store):
        assert store.load("2025.12.15-12.19") is None
        assert not store.exists("2025.12.15-12.19")

    def test_save_then_load(self, store):
        written = store.save("P", [rec("Taro", "大盛", 2), rec("Hanako")])
        loaded = store.load("P")
        assert written == 2
        assert as_tuples(loaded) == [
            (date(2025, 12, 16), "Hanako", "regular", 1),
            (date(2025, 12, 16), "Taro", "large", 2),
        ]

    def test_save_replaces_not_merges(self, store):
        """Saving B over A leaves exactly B."""
        a = [rec("Taro"), rec("Hanako", "large"), rec("Jiro", "small")]
        b = [rec("Saburo", "large", 3)]
        store.save("P", a)
        store.save("P", b)
        assert as_tuples(store.load("P")) == as_tuples(b)

    def test_periods_are_independent(self, store):
        store.save("P1", [rec("Taro")])
        store.save("P2", [rec("Hanako")])
        store.save("P1", [rec("Jiro")])
        assert [r.person for r in store.load("P1")] == ["Jiro"]
        assert [r.person for r in store.load("P2")] == ["Hanako"]

    def test_save_empty_clears_period(self, store):
        """An empty save deletes the period; load then reports None."""
        store.save("P", [rec("Taro")])
        assert store.save("P", []) == 0
        assert store.load("P") is None


class TestSqliteSnapshotStore:
    """SQLite specifics."""

    def test_no_residual_rows(self, sqlite_store):
        sqlite_store.save("P", [rec("A"), rec("B"), rec("C")])
        sqlite_store.save("P", [rec("D")])
        assert sqlite_store.count_rows("P") == 1
        assert sqlite_store.count_rows() == 1

    def test_dates_round_trip_as_dates(self, sqlite_store):
        sqlite_store.save("P", [rec("Taro", d=date(2026, 1, 5))])
        assert sqlite_store.load("P")[0].date == date(2026, 1, 5)

    def test_init_is_repeatable(self):
        """Opening the same file twice keeps existing rows."""
        from snapshots.db import SqliteSnapshotStore
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "s.db"
            SqliteSnapshotStore(path).save("P", [rec("Taro")])
            assert SqliteSnapshotStore(path).count_rows("P") == 1


class FakeTable:
    """Stands in for SheetTable: the sheet body (rows 2..n) held in memory."""

    def __init__(self, rows=None):
        self.sheet_name = "OrderSnapshots"
        self.rows = [list(r) for r in rows or []]

    def ensure_exists(self, headers=None):
        pass

    def read_rows(self, columns="A:Z", start_row=2):
        return [list(r) for r in self.rows]

    def delete_rows(self, row_numbers):
        doomed = {n - 2 for n in row_numbers}
        self.rows = [r for i, r in enumerate(self.rows) if i not in doomed]
        return len(doomed)

    def append_rows(self, rows):
        self.rows.extend(list(r) for r in rows)


class FailingTable(FakeTable):
    """Every write fails the way a quota or network error surfaces."""

    def delete_rows(self, row_numbers):
        from connectors.base import SheetAccessError
        raise SheetAccessError("Failed to delete rows from OrderSnapshots: quota", 429)

    def append_rows(self, rows):
        from connectors.base import SheetAccessError
        raise SheetAccessError("Failed to append to OrderSnapshots: quota", 429)


class TestSheetSnapshotStore:
    """Sheet-backed store keeps other periods and replaces its own."""

    def test_replace_keeps_other_periods(self):
        from connectors.google.sheets import SheetSnapshotStore

        table = FakeTable([
            ["OTHER", "2025/12/08", "Ken", "regular", 1, "2025-12-05 10:00:00"],
            ["P", "2025/12/16", "Old", "large", 1, "2025-12-12 10:00:00"],
        ])
        store = SheetSnapshotStore(table)
        store.save("P", [rec("Taro"), rec("Hanako", "小盛")])

        assert [r.person for r in store.load("OTHER")] == ["Ken"]
        assert as_tuples(store.load("P")) == [
            (date(2025, 12, 16), "Hanako", "small", 1),
            (date(2025, 12, 16), "Taro", "regular", 1),
        ]
        assert sum(1 for row in table.rows if row[0] == "P") == 2

    def test_missing_period_is_none(self):
        from connectors.google.sheets import SheetSnapshotStore
        assert SheetSnapshotStore(FakeTable()).load("P") is None

    def test_creates_sheet_with_headers(self):
        from connectors.google.sheets import SNAPSHOT_HEADERS, SheetSnapshotStore
        table = MagicMock()
        SheetSnapshotStore(table)
        table.ensure_exists.assert_called_once_with(SNAPSHOT_HEADERS)

    def test_failed_write_keeps_other_periods(self):
        from connectors.base import SheetAccessError
        from connectors.google.sheets import SheetSnapshotStore

        table = FailingTable([
            ["OTHER", "2025/12/08", "Ken", "regular", 1, "2025-12-05 10:00:00"],
            ["P", "2025/12/16", "Old", "large", 1, "2025-12-12 10:00:00"],
        ])
        store = SheetSnapshotStore(table)
        with pytest.raises(SheetAccessError):
            store.save("P", [rec("Taro")])

        assert [r.person for r in store.load("OTHER")] == ["Ken"]
        assert [r.person for r in store.load("P")] == ["Old"]

    def test_failed_append_loses_only_its_period(self):
        from connectors.base import SheetAccessError
        from connectors.google.sheets import SheetSnapshotStore

        class AppendFails(FakeTable):
            def append_rows(self, rows):
                raise SheetAccessError("Failed to append to OrderSnapshots: quota", 429)

        table = AppendFails([
            ["OTHER", "2025/12/08", "Ken", "regular", 1, "2025-12-05 10:00:00"],
            ["P", "2025/12/16", "Old", "large", 1, "2025-12-12 10:00:00"],
        ])
        store = SheetSnapshotStore(table)
        with pytest.raises(SheetAccessError):
            store.save("P", [rec("Taro")])

        assert [r.person for r in store.load("OTHER")] == ["Ken"]
        assert store.load("P") is None

    def test_only_matching_rows_deleted(self):
        from connectors.google.sheets import SheetSnapshotStore

        table = FakeTable([
            ["P", "2025/12/15", "A", "regular", 1, ""],
            ["OTHER", "2025/12/08", "Ken", "regular", 1, ""],
            ["P", "2025/12/16", "B", "regular", 1, ""],
            ["P", "2025/12/17", "C", "regular", 1, ""],
        ])
        deleted = []
        original = table.delete_rows

        def record_delete(row_numbers):
            deleted.append(sorted(row_numbers))
            return original(row_numbers)

        table.delete_rows = record_delete
        SheetSnapshotStore(table).save("P", [])

        assert deleted == [[2, 4, 5]]
        assert table.rows == [["OTHER", "2025/12/08", "Ken", "regular", 1, ""]]

    def test_unreadable_row_skipped(self):
        from connectors.google.sheets import SheetSnapshotStore

        table = FakeTable([
            ["P", "edited by hand", "Ken", "regular", 1, ""],
            ["P", "2025/12/16", "Taro", "大盛", 2, ""],
        ])
        records = SheetSnapshotStore(table).load("P")
        assert as_tuples(records) == [(date(2025, 12, 16), "Taro", "large", 2)]

    def test_only_unreadable_rows_is_none(self):
        from connectors.google.sheets import SheetSnapshotStore
        table = FakeTable([["P", "??", "Ken", "regular", 1, ""]])
        assert SheetSnapshotStore(table).load("P") is None
