"""Ring buffer of recent snapshots.

Provides the bounded in-memory window every aggregate is computed from.
When the buffer is full the oldest snapshot is evicted to make room, so
memory use stays predictable however long a session polls.
"""

import logging
import threading
from collections import deque
from collections.abc import Iterator

from promscope.core.models import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 60


class SnapshotHistory:
    """Ring buffer implementation of SnapshotStoragePort.

    Appends are serialised with a lock so the polling loop and manual
    paste-and-parse can both write without interleaving. Readers always
    see fully appended snapshots.

    Args:
        capacity: Maximum number of snapshots to keep.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._buffer: deque[Snapshot] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._buffer.maxlen or DEFAULT_CAPACITY

    def append(self, timestamp: int, snapshot: Snapshot) -> None:
        """Push a snapshot, stamping it with ``timestamp``.

        The stored snapshot carries ``timestamp`` even if the parsed one
        was stamped differently. A timestamp older than the current tail
        is raised to the tail's so the buffer never goes backwards.
        """
        with self._lock:
            if self._buffer and timestamp < self._buffer[-1].timestamp:
                timestamp = self._buffer[-1].timestamp
            if snapshot.timestamp != timestamp:
                snapshot = Snapshot(
                    timestamp=timestamp,
                    series=snapshot.series,
                    metadata=snapshot.metadata,
                )
            if len(self._buffer) == self._buffer.maxlen:
                logger.debug(
                    "History full (%d), evicting snapshot at %d",
                    self._buffer.maxlen,
                    self._buffer[0].timestamp,
                )
            self._buffer.append(snapshot)

    def current(self) -> Snapshot | None:
        """Return the newest snapshot, or None when empty."""
        with self._lock:
            return self._buffer[-1] if self._buffer else None

    def previous(self) -> Snapshot | None:
        """Return the second-newest snapshot, or None."""
        with self._lock:
            return self._buffer[-2] if len(self._buffer) > 1 else None

    def elapsed_seconds(self) -> float:
        """Seconds between the two newest snapshots, 0 with fewer than two."""
        with self._lock:
            if len(self._buffer) < 2:
                return 0.0
            return (self._buffer[-1].timestamp - self._buffer[-2].timestamp) / 1000

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[Snapshot]:
        with self._lock:
            items = list(self._buffer)
        return iter(items)
