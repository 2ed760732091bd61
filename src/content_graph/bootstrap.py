"""Wire settings, store, coordinator and search into one explicitly owned handle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.config import Settings
from content_graph.domain.model import AdminStats, Session
from content_graph.errors import DbResult
from content_graph.service_layer.admin_stats import get_admin_stats
from content_graph.service_layer.comments import create_comment
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.search_service import SearchService
from content_graph.service_layer.sessions import create_session
from content_graph.service_layer.unit_of_work import SqliteUnitOfWork


logger = logging.getLogger(__name__)


@dataclass
class ContentGraph:
    """Everything a caller needs to run core operations.

    Usage:
        async with ContentGraph.from_settings(Settings()) as graph:
            await create_article(graph.coordinator, ...)
            await graph.search.search("python")
    """

    settings: Settings
    store: SqliteStore
    coordinator: TransactionCoordinator
    search: SearchService

    @classmethod
    def from_settings(cls, settings: Settings) -> ContentGraph:
        store = SqliteStore.from_settings(settings)
        return cls(
            settings=settings,
            store=store,
            coordinator=TransactionCoordinator(lambda: SqliteUnitOfWork(store)),
            search=SearchService(store, settings),
        )

    async def start(self) -> None:
        await self.store.connect()

    async def close(self) -> None:
        await self.coordinator.drain()
        await self.store.close()

    async def __aenter__(self) -> ContentGraph:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start_session(self, user_id: str) -> DbResult[Session]:
        """Create a session that lives for ``SESSION_LIFETIME_HOURS``."""
        lifetime = timedelta(hours=self.settings.session_lifetime_hours)
        return await create_session(self.store, user_id, lifetime=lifetime)

    async def add_comment(self, *, article_id: str, author_id: str, author_name: str, content: str) -> DbResult[str]:
        return await create_comment(
            self.coordinator,
            article_id=article_id,
            author_id=author_id,
            author_name=author_name,
            content=content,
            max_length=self.settings.comment_max_length,
        )

    async def admin_stats(self) -> AdminStats:
        return await get_admin_stats(self.store, window_hours=self.settings.stats_window_hours)
