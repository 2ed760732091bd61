"""Read-only dashboard rollups for the admin area."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
import logging

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import AdminStats, utc_now
from content_graph.observability.metrics import ADMIN_STAT_FAILURES
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import Repositories, open_repositories


logger = logging.getLogger(__name__)

CountQuery = Callable[[Repositories], Awaitable[int]]


async def _run_count(store: SqliteStore, query: CountQuery) -> int:
    async with open_repositories(store) as repos:
        return await query(repos)


def _count_queries(window_hours: int) -> dict[str, CountQuery]:
    since = utc_now() - timedelta(hours=window_hours)
    return {
        "total_users": lambda repos: repos.users.count(),
        "total_articles": lambda repos: repos.articles.count(status="published"),
        "total_comments": lambda repos: repos.comments.count(),
        "today_users": lambda repos: repos.users.count(since=since),
        "today_articles": lambda repos: repos.articles.count(status="published", since=since),
        "today_comments": lambda repos: repos.comments.count(since=since),
    }


@instrumented("get_admin_stats")
async def get_admin_stats(store: SqliteStore, *, window_hours: int = 24) -> AdminStats:
    """Count users, published articles and comments, in total and within the window.

    The six counts run concurrently and independently. A count that fails is
    logged and reported as 0; this function never raises for a failed count.
    """
    queries = _count_queries(window_hours)
    outcomes = await asyncio.gather(
        *(_run_count(store, query) for query in queries.values()),
        return_exceptions=True,
    )

    counts: dict[str, int] = {}
    for metric, outcome in zip(queries, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            ADMIN_STAT_FAILURES.labels(metric=metric).inc()
            logger.error("Admin stat %s failed, reporting 0: %s", metric, outcome, exc_info=outcome)
            counts[metric] = 0
        else:
            counts[metric] = outcome
    return AdminStats(**counts)
