"""Unit of Work over the SQLite store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
import logging
import sqlite3

import anyio

from content_graph.adapters.repository import (
    AdminRepository,
    ArticleRepository,
    CommentRepository,
    MessageRepository,
    SessionRepository,
    UserRepository,
)
from content_graph.adapters.sqlite_store import SqliteStore


logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work."""

    users: UserRepository
    articles: ArticleRepository
    comments: CommentRepository
    sessions: SessionRepository
    messages: MessageRepository
    admins: AdminRepository

    async def __aenter__(self):
        """Enter transaction context."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit transaction context - rollback unless explicitly committed."""
        if not getattr(self, "_committed", False):
            await self.rollback()

    @abstractmethod
    async def commit(self):
        """Commit the transaction."""
        raise NotImplementedError

    @abstractmethod
    async def rollback(self):
        """Rollback the transaction."""
        raise NotImplementedError


class SqliteUnitOfWork(AbstractUnitOfWork):
    """Unit of Work holding one pooled connection inside ``BEGIN IMMEDIATE``.

    The write lock is taken on entry, so the reads a body makes before its
    writes cannot be invalidated by another writer: read-then-write sequences
    such as the like toggle are serialized. The connection goes back to the
    pool on every exit path.

    Bodies must reach the store only through the repositories on this object;
    acquiring a second connection from inside a body can exhaust the pool.
    """

    def __init__(self, store: SqliteStore):
        self.store = store
        self._committed = False
        self._conn: sqlite3.Connection | None = None
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self):
        stack = AsyncExitStack()
        conn = await stack.enter_async_context(self.store.acquire())
        try:
            await anyio.to_thread.run_sync(conn.execute, "BEGIN IMMEDIATE")
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._conn = conn
        self._committed = False
        self.users = UserRepository(conn)
        self.articles = ArticleRepository(conn)
        self.comments = CommentRepository(conn)
        self.sessions = SessionRepository(conn)
        self.messages = MessageRepository(conn)
        self.admins = AdminRepository(conn)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            stack, self._stack, self._conn = self._stack, None, None
            if stack is not None:
                await stack.aclose()

    async def commit(self):
        """Commit and mark the unit finished."""
        conn = self._require_connection()
        await anyio.to_thread.run_sync(conn.execute, "COMMIT")
        self._committed = True

    async def rollback(self):
        """Discard every write made in this unit."""
        conn = self._conn
        if conn is None:
            return
        if conn.in_transaction:
            await anyio.to_thread.run_sync(conn.execute, "ROLLBACK")
            logger.debug("Unit of work rolled back")
        self._committed = False

    def _require_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Unit of work used outside its context")
        return self._conn


@dataclass(frozen=True)
class Repositories:
    """Repositories on an autocommit connection, for single-document work."""

    users: UserRepository
    articles: ArticleRepository
    comments: CommentRepository
    sessions: SessionRepository
    messages: MessageRepository
    admins: AdminRepository


@asynccontextmanager
async def open_repositories(store: SqliteStore) -> AsyncIterator[Repositories]:
    """Lend a pooled connection outside any transaction.

    Each statement commits on its own. Use a unit of work instead whenever more
    than one document has to change together.
    """
    async with store.acquire() as conn:
        yield Repositories(
            users=UserRepository(conn),
            articles=ArticleRepository(conn),
            comments=CommentRepository(conn),
            sessions=SessionRepository(conn),
            messages=MessageRepository(conn),
            admins=AdminRepository(conn),
        )
