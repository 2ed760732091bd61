"""Unit tests for admin grants."""

import pytest

from content_graph.domain.model import new_id
from content_graph.errors import ErrorCode
from content_graph.service_layer.admins import (
    SUPER_ADMIN_PRIORITY,
    grant_admin,
    is_admin,
    is_super_admin,
    list_admins,
    revoke_admin,
)


@pytest.mark.unit
class TestGrantAdmin:
    async def test_grant(self, store, coordinator, alice):
        result = await grant_admin(coordinator, alice.id, priority=2)

        assert result.data.priority == 2
        assert (await is_admin(store, alice.id)).data is True
        assert (await is_super_admin(store, alice.id)).data is False

    async def test_super_admin(self, store, coordinator, alice):
        await grant_admin(coordinator, alice.id, priority=SUPER_ADMIN_PRIORITY)
        assert (await is_super_admin(store, alice.id)).data is True

    async def test_twice(self, coordinator, alice):
        await grant_admin(coordinator, alice.id)
        result = await grant_admin(coordinator, alice.id)
        assert result.error.code == ErrorCode.ADMIN_EXISTS

    async def test_unknown_user(self, coordinator):
        result = await grant_admin(coordinator, new_id())
        assert result.error.code == ErrorCode.NOT_FOUND

    async def test_negative_priority(self, coordinator, alice):
        result = await grant_admin(coordinator, alice.id, priority=-1)
        assert result.error.code == ErrorCode.VALIDATION_ERROR


@pytest.mark.unit
class TestAdminQueries:
    async def test_non_admin(self, store, bob):
        assert (await is_admin(store, bob.id)).data is False
        assert (await is_super_admin(store, bob.id)).data is False

    async def test_invalid_id(self, store):
        assert (await is_admin(store, "x")).error.code == ErrorCode.INVALID_ID_FORMAT

    async def test_list_by_rank(self, store, coordinator, alice, bob, make_user):
        carol = await make_user("Carol")
        await grant_admin(coordinator, alice.id, priority=3)
        await grant_admin(coordinator, bob.id, priority=SUPER_ADMIN_PRIORITY)
        await grant_admin(coordinator, carol.id, priority=1)

        admins = (await list_admins(store)).data

        assert [admin.user_id for admin in admins] == [bob.id, carol.id, alice.id]

    async def test_revoke(self, store, coordinator, alice):
        await grant_admin(coordinator, alice.id)

        assert (await revoke_admin(store, alice.id)).ok
        assert (await is_admin(store, alice.id)).data is False
        assert (await revoke_admin(store, alice.id)).error.code == ErrorCode.NOT_FOUND
