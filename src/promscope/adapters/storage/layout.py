"""Storage adapters for the persisted dashboard layout document.

The document is a JSON object ``{"widgets": [...], "layouts": {...}}``
stored under a fixed key. Parsed samples are never persisted; only the
widget configuration and grid layout survive a session.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

_LAYOUT_SCHEMA = """
CREATE TABLE IF NOT EXISTS layouts (
    key TEXT PRIMARY KEY,
    document TEXT NOT NULL DEFAULT '{}',
    updated_at REAL NOT NULL
);
"""

_UPSERT_LAYOUT = """
INSERT INTO layouts (key, document, updated_at) VALUES (?, ?, ?)
ON CONFLICT(key) DO UPDATE SET
    document = excluded.document,
    updated_at = excluded.updated_at
"""

_SELECT_LAYOUT = """
SELECT document FROM layouts WHERE key = ?
"""

_DELETE_LAYOUT = """
DELETE FROM layouts WHERE key = ?
"""


def empty_document() -> dict[str, Any]:
    return {"widgets": [], "layouts": {}}


def normalize_document(data: Any) -> dict[str, Any]:
    """Coerce loaded data into a well-formed layout document.

    Anything that is not a mapping, or whose ``widgets``/``layouts`` have
    the wrong shape, is replaced by the empty equivalent.
    """
    if not isinstance(data, dict):
        return empty_document()
    widgets = data.get("widgets")
    layouts = data.get("layouts")
    return {
        **data,
        "widgets": widgets if isinstance(widgets, list) else [],
        "layouts": layouts if isinstance(layouts, dict) else {},
    }


def _safe_json_loads(data: str) -> dict[str, Any]:
    """Parse a stored document, returning the empty document on decode error."""
    try:
        return normalize_document(json.loads(data))
    except json.JSONDecodeError:
        logger.warning("Discarding corrupt layout document")
        return empty_document()


class InMemoryLayoutStorage:
    """In-memory implementation of LayoutStoragePort.

    Suitable for testing and for sessions that do not need the layout
    to outlive the process.
    """

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def load(self, key: str) -> dict[str, Any]:
        """Return the stored document, or the empty document when absent."""
        raw = self._documents.get(key)
        return empty_document() if raw is None else _safe_json_loads(raw)

    async def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the stored document under ``key``."""
        self._documents[key] = json.dumps(normalize_document(document))

    async def delete(self, key: str) -> None:
        self._documents.pop(key, None)


class SQLiteLayoutStorage:
    """SQLite implementation of LayoutStoragePort.

    Stores layout documents using aiosqlite for non-blocking access. For
    :memory: databases a persistent connection is kept, since in-memory
    databases are connection-scoped in SQLite.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._db_path == ":memory:":
                self._persistent_conn = await aiosqlite.connect(":memory:")
                await self._persistent_conn.executescript(_LAYOUT_SCHEMA)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(_LAYOUT_SCHEMA)
            self._initialized = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection, closing it afterwards for file databases."""
        await self._ensure_initialized()
        if self._persistent_conn is not None:
            yield self._persistent_conn
            return
        db = await aiosqlite.connect(self._db_path)
        try:
            yield db
        finally:
            await db.close()

    async def load(self, key: str) -> dict[str, Any]:
        """Return the stored document, or the empty document when absent."""
        async with self._connection() as db:
            async with db.execute(_SELECT_LAYOUT, (key,)) as cursor:
                row = await cursor.fetchone()
        return empty_document() if row is None else _safe_json_loads(row[0])

    async def save(self, key: str, document: dict[str, Any]) -> None:
        """Replace the stored document under ``key``."""
        payload = json.dumps(normalize_document(document))
        async with self._connection() as db:
            await db.execute(_UPSERT_LAYOUT, (key, payload, time.time()))
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self._connection() as db:
            await db.execute(_DELETE_LAYOUT, (key,))
            await db.commit()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False
