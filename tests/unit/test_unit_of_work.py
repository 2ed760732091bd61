"""Unit tests for the Unit of Work and the transaction coordinator.

- Transaction boundaries (commit/rollback) on the SQLite store
- Connection lifecycle (every exit path returns the pooled connection)
- Failure classification in the coordinator
"""

import asyncio

from prometheus_client import REGISTRY
import pytest

from content_graph.domain.model import User
from content_graph.errors import ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork, SqliteUnitOfWork, open_repositories


def _new_user(name: str = "Eve") -> User:
    return User.create(name, f"{name.lower()}@example.com", "hashed")


async def _exists(store, user_id: str) -> bool:
    async with open_repositories(store) as repos:
        return await repos.users.get(user_id) is not None


class FakeUnitOfWork(AbstractUnitOfWork):
    """In-memory unit of work recording what the coordinator asked of it."""

    def __init__(self):
        self.committed = False
        self.rolled_back = False

    async def commit(self):
        self.committed = True
        self._committed = True

    async def rollback(self):
        self.rolled_back = True


@pytest.mark.unit
class TestSqliteUnitOfWork:
    """Transaction boundaries on the real store."""

    async def test_commit_persists(self, store):
        user = _new_user()
        async with SqliteUnitOfWork(store) as uow:
            await uow.users.add(user)
            await uow.commit()

        assert await _exists(store, user.id)

    async def test_rolls_back_uncommitted_work_by_default(self, store):
        user = _new_user()
        async with SqliteUnitOfWork(store) as uow:
            await uow.users.add(user)

        assert not await _exists(store, user.id)

    async def test_rolls_back_on_error(self, store):
        user = _new_user()
        with pytest.raises(ValueError, match="Simulated error"):
            async with SqliteUnitOfWork(store) as uow:
                await uow.users.add(user)
                raise ValueError("Simulated error")

        assert not await _exists(store, user.id)

    async def test_explicit_rollback(self, store):
        user = _new_user()
        async with SqliteUnitOfWork(store) as uow:
            await uow.users.add(user)
            await uow.rollback()

        assert not await _exists(store, user.id)

    async def test_connection_returned_on_every_path(self, store, settings):
        async with SqliteUnitOfWork(store) as uow:
            await uow.commit()
        with pytest.raises(RuntimeError):
            async with SqliteUnitOfWork(store):
                raise RuntimeError("boom")

        assert store._pool.qsize() == settings.database_pool_size

    async def test_commit_outside_context(self, store):
        with pytest.raises(RuntimeError, match="outside its context"):
            await SqliteUnitOfWork(store).commit()


@pytest.mark.unit
class TestTransactionCoordinator:
    """Outcome classification."""

    async def test_success_commits(self):
        uow = FakeUnitOfWork()

        async def work(_uow):
            return "done"

        result = await TransactionCoordinator(lambda: uow).run("fake_success", work)

        assert result.ok
        assert result.data == "done"
        assert uow.committed
        assert not uow.rolled_back

    async def test_surfaced_abort(self):
        uow = FakeUnitOfWork()

        async def work(_uow):
            raise TransactionAbort("missing", ErrorCode.NOT_FOUND)

        result = await TransactionCoordinator(lambda: uow).run("fake_abort", work, surface_codes={ErrorCode.NOT_FOUND})

        assert result.error.code == ErrorCode.NOT_FOUND
        assert result.error.cause is None
        assert uow.rolled_back

    async def test_collapsed_abort_keeps_cause(self):
        async def work(_uow):
            raise TransactionAbort("missing", ErrorCode.NOT_FOUND)

        result = await TransactionCoordinator(FakeUnitOfWork).run("fake_collapse", work)

        assert result.error.code == ErrorCode.TRANSACTION_ERROR
        assert result.error.cause == ErrorCode.NOT_FOUND
        assert result.error.message == "missing"

    async def test_unexpected_exception(self):
        uow = FakeUnitOfWork()

        async def work(_uow):
            raise KeyError("surprise")

        result = await TransactionCoordinator(lambda: uow).run("fake_crash", work)

        assert result.error.code == ErrorCode.TRANSACTION_ERROR
        assert result.error.cause is None
        assert uow.rolled_back

    async def test_outcomes_are_counted(self):
        def sample(outcome: str) -> float:
            labels = {"operation": "fake_counted", "outcome": outcome}
            return REGISTRY.get_sample_value("transaction_outcomes_total", labels) or 0.0

        async def ok(_uow):
            return None

        async def abort(_uow):
            raise TransactionAbort("no")

        coordinator = TransactionCoordinator(FakeUnitOfWork)
        committed, aborted = sample("committed"), sample("aborted")

        await coordinator.run("fake_counted", ok)
        await coordinator.run("fake_counted", abort)

        assert sample("committed") == committed + 1
        assert sample("aborted") == aborted + 1

    async def test_cancelled_caller_leaves_unit_running(self):
        uow = FakeUnitOfWork()
        entered, release = asyncio.Event(), asyncio.Event()

        async def work(_uow):
            entered.set()
            await release.wait()
            return "done"

        coordinator = TransactionCoordinator(lambda: uow)
        caller = asyncio.create_task(coordinator.run("fake_cancelled", work))
        await entered.wait()

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        assert coordinator.pending == 1

        release.set()
        await coordinator.drain()

        assert uow.committed
        assert not uow.rolled_back
        assert coordinator.pending == 0

    async def test_real_store_rollback(self, store):
        user = _new_user()

        async def work(uow):
            await uow.users.add(user)
            raise TransactionAbort("changed my mind")

        result = await TransactionCoordinator(lambda: SqliteUnitOfWork(store)).run("fake_real", work)

        assert not result.ok
        assert not await _exists(store, user.id)
