"""Order snapshot persistence (one replaceable row set per period key)."""

from snapshots.store import SnapshotStore, InMemorySnapshotStore, snapshot_rows
from snapshots.db import SqliteSnapshotStore, init_snapshot_db

__all__ = [
    "SnapshotStore",
    "InMemorySnapshotStore",
    "SqliteSnapshotStore",
    "init_snapshot_db",
    "snapshot_rows",
]
