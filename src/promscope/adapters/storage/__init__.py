"""Storage adapters implementing core ports."""

from promscope.adapters.storage.history import SnapshotHistory
from promscope.adapters.storage.layout import (
    InMemoryLayoutStorage,
    SQLiteLayoutStorage,
)

__all__ = [
    "InMemoryLayoutStorage",
    "SQLiteLayoutStorage",
    "SnapshotHistory",
]
