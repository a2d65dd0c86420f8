"""
POWERWATCH State Service

Durable record of the last observed server snapshot.
"""

from .snapshot_store import (
    SnapshotStore,
    initialize_snapshot,
    last_modified,
    read_snapshot,
    write_snapshot,
)

__all__ = [
    "SnapshotStore",
    "initialize_snapshot",
    "last_modified",
    "read_snapshot",
    "write_snapshot",
]
