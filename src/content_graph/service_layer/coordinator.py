"""Transaction coordinator: the single choke point for multi-collection writes."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection
import logging
from typing import TypeVar

from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.observability.metrics import TRANSACTION_OUTCOMES
from content_graph.observability.tracing import create_span
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork


logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


class TransactionCoordinator:
    """Run a unit-of-work body all-or-nothing and classify its failure.

    ``work`` receives the open unit of work and returns the operation's
    result. It signals a failed precondition by raising ``TransactionAbort``;
    any other exception is treated as an infrastructure failure. Either way
    the unit rolls back and the pooled connection is released.

    Failures are reported as ``TRANSACTION_ERROR`` unless the abort carries a
    code listed in ``surface_codes``, in which case that code is reported. The
    original tag is kept in ``DbError.cause`` when it is collapsed.

    Once ``run`` is called the unit is admitted and runs to its end in its own
    task. Cancelling the caller raises ``CancelledError`` in the caller only;
    the unit still commits or rolls back on its own outcome. ``drain`` waits
    for admitted units that have lost their caller.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory
        self._in_flight: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of admitted units that have not finished yet."""
        return len(self._in_flight)

    async def run(
        self,
        operation: str,
        work: Callable[[AbstractUnitOfWork], Awaitable[T]],
        *,
        surface_codes: Collection[ErrorCode] = (),
    ) -> DbResult[T]:
        task = asyncio.ensure_future(self._run_unit(operation, work, surface_codes))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait until every admitted unit has committed or rolled back."""
        while self._in_flight:
            await asyncio.wait(set(self._in_flight))

    async def _run_unit(
        self,
        operation: str,
        work: Callable[[AbstractUnitOfWork], Awaitable[T]],
        surface_codes: Collection[ErrorCode],
    ) -> DbResult[T]:
        with create_span(f"uow.{operation}", attributes={"content.operation": operation}) as span:
            try:
                async with self._uow_factory() as uow:
                    result = await work(uow)
                    await uow.commit()
            except TransactionAbort as abort:
                TRANSACTION_OUTCOMES.labels(operation=operation, outcome="aborted").inc()
                span.set_attribute("content.abort_code", str(abort.code or ""))
                logger.warning("%s aborted: %s", operation, abort)
                if abort.code is not None and abort.code in surface_codes:
                    return DbResult.fail(abort.code, str(abort))
                return DbResult.fail(ErrorCode.TRANSACTION_ERROR, str(abort), cause=abort.code)
            except Exception as exc:
                TRANSACTION_OUTCOMES.labels(operation=operation, outcome="failed").inc()
                logger.exception("%s failed inside its unit of work", operation)
                return DbResult.fail(ErrorCode.TRANSACTION_ERROR, f"{operation} failed: {exc}")

            TRANSACTION_OUTCOMES.labels(operation=operation, outcome="committed").inc()
            return DbResult.success(result)
