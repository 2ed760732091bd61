"""SQLite-backed document store.

The store is an explicitly constructed handle with a connect/close lifecycle,
injected into repositories and units of work instead of living in a module
global. Following SQLite best practices:
- WAL mode with NORMAL synchronous so readers never block the single writer
- ``BEGIN IMMEDIATE`` for write transactions (taken by the unit of work)
- A fixed pool of connections lent out one at a time
- Blocking calls run in worker threads so the event loop stays responsive
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
from pathlib import Path
import sqlite3
from typing import TYPE_CHECKING

import anyio

from content_graph.errors import StoreNotConnectedError


if TYPE_CHECKING:
    from content_graph.config import Settings


logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        signature TEXT NOT NULL DEFAULT '',
        articles TEXT NOT NULL DEFAULT '[]',
        likes TEXT NOT NULL DEFAULT '[]',
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        summary TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        author_id TEXT NOT NULL,
        author_name TEXT NOT NULL,
        body TEXT NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('draft', 'published')),
        likes INTEGER NOT NULL DEFAULT 0,
        comments TEXT NOT NULL DEFAULT '[]',
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS comments (
        id TEXT PRIMARY KEY,
        article_id TEXT NOT NULL,
        author_id TEXT NOT NULL,
        author_name TEXT NOT NULL,
        content TEXT NOT NULL,
        created_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        user_data TEXT NOT NULL,
        expires_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('comment', 'like')),
        article_id TEXT NOT NULL,
        article_title TEXT NOT NULL,
        from_user_id TEXT NOT NULL,
        from_user_name TEXT NOT NULL,
        comment_id TEXT,
        comment_content TEXT,
        created_at REAL NOT NULL,
        is_read INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS admins (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        priority INTEGER NOT NULL DEFAULT 1,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
)

_INDEXES = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email ON users (email)",
    "CREATE INDEX IF NOT EXISTS idx_articles_author ON articles (author_id)",
    "CREATE INDEX IF NOT EXISTS idx_articles_tags ON articles (tags)",
    "CREATE INDEX IF NOT EXISTS idx_articles_status ON articles (status)",
    "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles (created_at)",
    "CREATE INDEX IF NOT EXISTS idx_comments_article ON comments (article_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_author ON comments (author_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_created ON comments (created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions (expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_messages_user ON messages (user_id, created_at)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_admins_user ON admins (user_id)",
)


def icontains(haystack: str | None, needle: str | None) -> int:
    """Case-insensitive substring test registered as a SQL function."""
    if haystack is None or needle is None:
        return 0
    return 1 if needle.casefold() in haystack.casefold() else 0


def apply_pragmas(
    conn: sqlite3.Connection,
    *,
    busy_timeout_ms: int = 30000,
    cache_size_kb: int = -16384,
) -> None:
    """Apply the PRAGMAs every pooled connection runs with."""
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {int(cache_size_kb)}")
    conn.execute("PRAGMA temp_store = MEMORY")


class SqliteStore:
    """Connection handle shared by repositories and units of work.

    Lifecycle:
        store = SqliteStore(path)
        await store.connect()      # opens the pool, creates tables and indexes
        async with store.acquire() as conn: ...
        await store.close()
    """

    def __init__(self, db_path: Path, *, pool_size: int = 4, busy_timeout_ms: int = 30000):
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        self.db_path = Path(db_path).expanduser()
        self.pool_size = pool_size
        self.busy_timeout_ms = busy_timeout_ms
        self._pool: asyncio.Queue[sqlite3.Connection] | None = None
        self._connections: list[sqlite3.Connection] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> SqliteStore:
        return cls(
            settings.database_path,
            pool_size=settings.database_pool_size,
            busy_timeout_ms=settings.database_busy_timeout_ms,
        )

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the connection pool and make sure the schema exists."""
        if self._pool is not None:
            return

        await anyio.to_thread.run_sync(self._open_connections)
        pool: asyncio.Queue[sqlite3.Connection] = asyncio.Queue()
        for conn in self._connections:
            pool.put_nowait(conn)
        self._pool = pool
        await self.ensure_indexes()
        logger.info("Connected to store at %s (pool_size=%d)", self.db_path, self.pool_size)

    async def close(self) -> None:
        """Close every pooled connection. Safe to call twice."""
        if self._pool is None:
            return
        self._pool = None
        connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close connection: %s", exc)
        logger.info("Store at %s closed", self.db_path)

    async def __aenter__(self) -> SqliteStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[sqlite3.Connection]:
        """Lend one pooled connection; it is returned on every exit path."""
        pool = self._pool
        if pool is None:
            raise StoreNotConnectedError(f"Store at {self.db_path} is not connected")
        conn = await pool.get()
        try:
            yield conn
        finally:
            pool.put_nowait(conn)

    async def ensure_indexes(self) -> None:
        """Create tables and indexes if they are missing."""
        async with self.acquire() as conn:
            await anyio.to_thread.run_sync(self._create_schema, conn)
        logger.debug("Schema and indexes ensured for %s", self.db_path)

    def _open_connections(self) -> None:
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(self.pool_size):
            self._connections.append(self._create_connection())

    def _create_connection(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly by the unit of work
        conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.create_function("icontains", 2, icontains, deterministic=True)
        apply_pragmas(conn, busy_timeout_ms=self.busy_timeout_ms)
        return conn

    @staticmethod
    def _create_schema(conn: sqlite3.Connection) -> None:
        for statement in (*_SCHEMA, *_INDEXES):
            conn.execute(statement)
