"""Port interfaces for the adapters promscope talks to.

The core depends only on these protocols: where exposition text comes
from, where snapshots are kept, and where the dashboard layout document
is persisted.
"""

from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

from promscope.core.models import Snapshot


@runtime_checkable
class ExpositionSourcePort(Protocol):
    """Producer of raw exposition text, one call per polling cycle.

    Implementations either return the body text or raise
    :class:`~promscope.core.exceptions.FetchFailure`.
    """

    async def fetch(self) -> str:
        """Fetch one scrape worth of exposition text."""
        ...


@runtime_checkable
class SnapshotStoragePort(Protocol):
    """Port for the rolling window of snapshots.

    Examples: SnapshotHistory.
    """

    def append(self, timestamp: int, snapshot: Snapshot) -> None:
        """Add a snapshot at the tail, evicting from the head when full."""
        ...

    def current(self) -> Snapshot | None:
        """Return the newest snapshot, or None when empty."""
        ...

    def previous(self) -> Snapshot | None:
        """Return the second-newest snapshot, or None."""
        ...

    def elapsed_seconds(self) -> float:
        """Seconds between previous and current, 0 with fewer than two."""
        ...

    def __iter__(self) -> Iterator[Snapshot]: ...

    def __len__(self) -> int: ...


@runtime_checkable
class LayoutStoragePort(Protocol):
    """Port for persisting the dashboard document ``{widgets, layouts}``.

    Examples: InMemoryLayoutStorage, SQLiteLayoutStorage.
    """

    async def load(self, key: str) -> dict[str, Any]:
        """Return the stored document, or the empty document when absent."""
        ...

    async def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the stored document under ``key``."""
        ...
