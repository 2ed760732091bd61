"""Shared test fixtures and configuration."""

from collections.abc import Awaitable, Callable

import pytest

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.config import Settings
from content_graph.domain.model import User
from content_graph.service_layer.articles import create_article
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.unit_of_work import SqliteUnitOfWork, open_repositories
from content_graph.service_layer.users import create_user


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Make sure no stray environment variable leaks into Settings."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, database_path=tmp_path / "content.db", log_json=False)


@pytest.fixture
async def store(settings):
    store = SqliteStore.from_settings(settings)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
async def coordinator(store):
    coordinator = TransactionCoordinator(lambda: SqliteUnitOfWork(store))
    yield coordinator
    await coordinator.drain()


async def _fetch_user(store: SqliteStore, user_id: str) -> User | None:
    async with open_repositories(store) as repos:
        return await repos.users.get(user_id)


@pytest.fixture
def load_user(store) -> Callable[[str], Awaitable[User | None]]:
    """Re-read a user from the store."""
    return lambda user_id: _fetch_user(store, user_id)


@pytest.fixture
def make_user(store) -> Callable[..., Awaitable[User]]:
    async def _make(name: str = "Alice", email: str | None = None) -> User:
        result = await create_user(
            store, name=name, email=email or f"{name.lower()}@example.com", password_hash="hashed"
        )
        assert result.ok, result.error
        user = await _fetch_user(store, result.data)
        assert user is not None
        return user

    return _make


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user("Alice")


@pytest.fixture
async def bob(make_user) -> User:
    return await make_user("Bob")


@pytest.fixture
def make_article(coordinator) -> Callable[..., Awaitable[str]]:
    async def _make(
        author: User,
        title: str = "Untitled",
        *,
        summary: str = "A short summary",
        body: str = "Body text",
        tags: list[str] | None = None,
        status: str = "published",
    ) -> str:
        result = await create_article(
            coordinator,
            title=title,
            summary=summary,
            tags=tags or [],
            body=body,
            author_id=author.id,
            author_name=author.name,
            status=status,
        )
        assert result.ok, result.error
        return result.data

    return _make
