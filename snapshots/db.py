"""SQLite-backed snapshot store.

This module handles all database operations for order snapshots:
- Schema initialization
- Replace-by-period save (delete then insert, one transaction)
- Load by period key

Dates are stored as canonical YYYY/MM/DD strings and parsed back on load.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from core.models import OrderRecord, format_date
from core.observability import get_logger
from snapshots.store import SnapshotStore, snapshot_rows

logger = get_logger(__name__)


DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "bento.db"


def init_snapshot_db(db_path: Union[str, Path] = DEFAULT_DB_PATH) -> None:
    """Initialize the order_snapshots table.

    Creates:
    - order_snapshots: one row per order line per period key

    Args:
        db_path: Path to SQLite database file
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS order_snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                period_key TEXT NOT NULL,
                order_date TEXT NOT NULL,
                person TEXT NOT NULL,
                size TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 1,
                saved_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_order_snapshots_period
            ON order_snapshots(period_key)
        """)

        conn.commit()
    finally:
        conn.close()


class SqliteSnapshotStore(SnapshotStore):
    """Snapshot store in a local SQLite file."""

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DB_PATH):
        self.db_path = str(db_path)
        init_snapshot_db(self.db_path)

    def save(self, period_key: str, records: Iterable[OrderRecord]) -> int:
        rows = snapshot_rows(records)
        now = datetime.utcnow().isoformat()

        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                deleted = conn.execute(
                    "DELETE FROM order_snapshots WHERE period_key = ?",
                    (period_key,),
                ).rowcount
                conn.executemany(
                    """
                    INSERT INTO order_snapshots
                    (period_key, order_date, person, size, count, saved_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (period_key, format_date(r.date), r.person, r.size, r.count, now)
                        for r in rows
                    ],
                )
        finally:
            conn.close()

        if deleted:
            logger.info(f"Replaced {deleted} existing snapshot row(s) for {period_key}")
        logger.info(f"Saved snapshot {period_key}: {len(rows)} row(s)")
        return len(rows)

    def load(self, period_key: str) -> Optional[List[OrderRecord]]:
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                """
                SELECT order_date, person, size, count
                FROM order_snapshots
                WHERE period_key = ?
                ORDER BY id
                """,
                (period_key,),
            )
            rows = cursor.fetchall()
        finally:
            conn.close()

        if not rows:
            logger.debug(f"No snapshot stored for {period_key}")
            return None

        logger.info(f"Loaded snapshot {period_key}: {len(rows)} row(s)")
        return [
            OrderRecord(date=order_date, person=person, size=size, count=count)
            for order_date, person, size, count in rows
        ]

    def count_rows(self, period_key: Optional[str] = None) -> int:
        """Row count for one period, or for the whole table."""
        conn = sqlite3.connect(self.db_path)
        try:
            if period_key is None:
                cursor = conn.execute("SELECT COUNT(*) FROM order_snapshots")
            else:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM order_snapshots WHERE period_key = ?",
                    (period_key,),
                )
            return cursor.fetchone()[0]
        finally:
            conn.close()
