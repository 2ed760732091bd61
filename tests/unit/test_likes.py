"""Unit tests for the like toggle and its counter invariant."""

import asyncio

import pytest

from content_graph.domain.model import new_id
from content_graph.errors import ErrorCode
from content_graph.service_layer.articles import delete_article, get_article_by_id
from content_graph.service_layer.likes import toggle_like
from content_graph.service_layer.messages import list_messages
from content_graph.service_layer.unit_of_work import open_repositories


async def _likers(store, article_id: str) -> int:
    async with open_repositories(store) as repos:
        return await repos.users.count_liking(article_id)


async def _like_count(store, article_id: str) -> int:
    return (await get_article_by_id(store, article_id)).data.likes


@pytest.mark.unit
class TestToggleLike:
    """State changes in both directions."""

    async def test_like_then_unlike(self, store, coordinator, alice, bob, make_article, load_user):
        article_id = await make_article(alice)

        liked = await toggle_like(coordinator, bob.id, article_id)
        assert liked.data.action == "liked"
        assert liked.data.new_count == 1
        assert (await load_user(bob.id)).likes == [article_id]

        unliked = await toggle_like(coordinator, bob.id, article_id)
        assert unliked.data.action == "unliked"
        assert unliked.data.new_count == 0
        assert (await load_user(bob.id)).likes == []

    async def test_even_toggles_restore_state(self, store, coordinator, alice, bob, make_article):
        article_id = await make_article(alice)

        for _ in range(4):
            await toggle_like(coordinator, bob.id, article_id)

        assert await _like_count(store, article_id) == 0
        assert await _likers(store, article_id) == 0

    async def test_counter_tracks_distinct_likers(self, store, coordinator, alice, make_user, make_article):
        article_id = await make_article(alice)
        for name in ("U1", "U2", "U3"):
            user = await make_user(name)
            await toggle_like(coordinator, user.id, article_id)

        assert await _like_count(store, article_id) == 3
        assert await _likers(store, article_id) == 3

    async def test_like_notifies_author(self, store, coordinator, alice, bob, make_article):
        article_id = await make_article(alice, "Liked post")

        await toggle_like(coordinator, bob.id, article_id)
        await toggle_like(coordinator, bob.id, article_id)

        inbox = (await list_messages(store, alice.id)).data
        assert len(inbox) == 1
        assert inbox[0].type == "like"
        assert inbox[0].from_user_name == "Bob"
        assert inbox[0].article_title == "Liked post"

    async def test_self_like_is_counted(self, store, coordinator, alice, make_article):
        article_id = await make_article(alice)

        result = await toggle_like(coordinator, alice.id, article_id)

        assert result.data.new_count == 1
        assert len((await list_messages(store, alice.id)).data) == 1


@pytest.mark.unit
class TestToggleLikeConcurrency:
    """Racing toggles are serialized by the unit of work."""

    @pytest.mark.parametrize(("toggles", "expected"), [(5, 1), (6, 0)])
    async def test_same_user_racing(self, store, coordinator, alice, bob, make_article, toggles, expected):
        article_id = await make_article(alice)

        results = await asyncio.gather(*(toggle_like(coordinator, bob.id, article_id) for _ in range(toggles)))

        assert all(result.ok for result in results)
        assert await _like_count(store, article_id) == expected
        assert await _likers(store, article_id) == expected

    async def test_many_users_racing(self, store, coordinator, alice, make_user, make_article):
        article_id = await make_article(alice)
        users = [await make_user(f"Racer{index}") for index in range(6)]

        await asyncio.gather(*(toggle_like(coordinator, user.id, article_id) for user in users))

        assert await _like_count(store, article_id) == 6
        assert await _likers(store, article_id) == 6

    async def test_delete_racing_toggles(self, store, coordinator, alice, bob, make_article, load_user):
        article_id = await make_article(alice)

        await asyncio.gather(
            toggle_like(coordinator, bob.id, article_id),
            delete_article(coordinator, article_id),
            toggle_like(coordinator, bob.id, article_id),
        )

        assert (await get_article_by_id(store, article_id)).error.code == ErrorCode.NOT_FOUND
        assert article_id not in (await load_user(bob.id)).likes


@pytest.mark.unit
class TestToggleLikeErrors:
    async def test_invalid_ids(self, coordinator, alice):
        assert (await toggle_like(coordinator, "x", new_id())).error.code == ErrorCode.INVALID_ID_FORMAT
        assert (await toggle_like(coordinator, alice.id, "y")).error.code == ErrorCode.INVALID_ID_FORMAT

    async def test_missing_article(self, coordinator, alice):
        result = await toggle_like(coordinator, alice.id, new_id())
        assert result.error.code == ErrorCode.NOT_FOUND

    async def test_missing_user_leaves_counter(self, store, coordinator, alice, make_article):
        article_id = await make_article(alice)

        result = await toggle_like(coordinator, new_id(), article_id)

        assert result.error.code == ErrorCode.NOT_FOUND
        assert await _like_count(store, article_id) == 0


@pytest.mark.unit
class TestToggleLikeCancellation:
    """An admitted toggle outlives its caller."""

    async def test_cancelled_caller_still_commits(self, store, coordinator, alice, bob, make_article, load_user):
        article_id = await make_article(alice)

        caller = asyncio.create_task(toggle_like(coordinator, bob.id, article_id))
        while not coordinator.pending:
            await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await coordinator.drain()

        assert await _like_count(store, article_id) == 1
        assert await _likers(store, article_id) == 1
        assert (await load_user(bob.id)).likes == [article_id]
