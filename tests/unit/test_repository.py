"""Unit tests for the SQLite repositories."""

from contextlib import closing
from datetime import timedelta
import sqlite3

import pytest

from content_graph.domain.model import Article, User, new_id, utc_now
from content_graph.service_layer.unit_of_work import open_repositories


def _article(author: User, title: str, *, status: str = "published", tags=None) -> Article:
    return Article.create(
        title=title,
        summary="summary",
        tags=tags or [],
        body="body",
        author_id=author.id,
        author_name=author.name,
        status=status,
    )


@pytest.mark.unit
class TestUserRepository:
    async def test_duplicate_email_raises(self, store, alice):
        async with open_repositories(store) as repos:
            with pytest.raises(sqlite3.IntegrityError):
                await repos.users.add(User.create("Clone", alice.email, "h"))

    async def test_like_set_semantics(self, store, alice, load_user):
        article_id = new_id()
        async with open_repositories(store) as repos:
            assert await repos.users.add_like(alice.id, article_id)
            assert await repos.users.add_like(alice.id, article_id)
            assert await repos.users.count_liking(article_id) == 1

        assert (await load_user(alice.id)).likes == [article_id]

    async def test_set_ops_on_missing_user(self, store):
        async with open_repositories(store) as repos:
            assert await repos.users.add_like(new_id(), new_id()) is False
            assert await repos.users.remove_article(new_id(), new_id()) is False

    async def test_remove_like_from_all(self, store, alice, bob):
        target, other = new_id(), new_id()
        async with open_repositories(store) as repos:
            await repos.users.add_like(alice.id, target)
            await repos.users.add_like(bob.id, target)
            await repos.users.add_like(bob.id, other)

            assert await repos.users.remove_like_from_all(target) == 2
            assert await repos.users.count_liking(target) == 0
            assert (await repos.users.get(bob.id)).likes == [other]

    async def test_article_set_moves_updated_at_both_ways(self, store, settings, alice):
        article_id = new_id()
        stale = (utc_now() - timedelta(days=1)).timestamp()

        def age_author():
            with closing(sqlite3.connect(settings.database_path)) as conn, conn:
                conn.execute("UPDATE users SET updated_at = ? WHERE id = ?", (stale, alice.id))

        async with open_repositories(store) as repos:
            age_author()
            assert await repos.users.add_article(alice.id, article_id)
            added = await repos.users.get(alice.id)
            assert added.articles == [article_id]
            assert added.updated_at.timestamp() > stale

            age_author()
            assert await repos.users.remove_article(alice.id, article_id)
            removed = await repos.users.get(alice.id)
            assert removed.articles == []
            assert removed.updated_at.timestamp() > stale

    async def test_email_taken(self, store, alice):
        async with open_repositories(store) as repos:
            assert await repos.users.email_taken(alice.email)
            assert not await repos.users.email_taken(alice.email, exclude_id=alice.id)


@pytest.mark.unit
class TestArticleRepository:
    async def test_round_trip(self, store, alice):
        article = _article(alice, "Round trip", tags=["a", "b"])
        async with open_repositories(store) as repos:
            await repos.articles.add(article)
            loaded = await repos.articles.get(article.id)

        assert loaded.tags == ["a", "b"]
        assert abs((loaded.created_at - article.created_at).total_seconds()) < 0.001
        assert loaded.status == "published"

    async def test_adjust_likes_missing(self, store):
        async with open_repositories(store) as repos:
            assert await repos.articles.adjust_likes(new_id(), 1) is None

    async def test_find_matching_filters(self, store, alice):
        first = _article(alice, "Alpha notes")
        second = _article(alice, "alpha draft", status="draft")
        third = _article(alice, "Beta", tags=["ALPHA"])
        async with open_repositories(store) as repos:
            for article in (first, second, third):
                await repos.articles.add(article)

            published = await repos.articles.find_matching(("title", "tags"), ["alpha"])
            everything = await repos.articles.find_matching(("title", "tags"), ["alpha"], status="all")
            excluded = await repos.articles.find_matching(("title",), ["alpha"], exclude_ids=[first.id])
            capped = await repos.articles.find_matching(("title", "tags"), ["alpha"], status="all", limit=1)
            nothing = await repos.articles.find_matching(("title",), [])

        assert [a.id for a in published] == [third.id, first.id]
        assert [a.id for a in everything] == [third.id, second.id, first.id]
        assert excluded == []
        assert [a.id for a in capped] == [third.id]
        assert nothing == []

    async def test_count(self, store, alice):
        async with open_repositories(store) as repos:
            await repos.articles.add(_article(alice, "p"))
            await repos.articles.add(_article(alice, "d", status="draft"))

            assert await repos.articles.count() == 2
            assert await repos.articles.count(status="published") == 1
