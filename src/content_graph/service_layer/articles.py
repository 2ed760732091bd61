"""Article use cases.

Creation and deletion touch more than one collection (the author's
``articles`` set, every liker's ``likes`` set) and run through the
transaction coordinator. Listings are plain reads.
"""

from __future__ import annotations

from datetime import timedelta
import logging
import sqlite3
from typing import Any, get_args

from pydantic import ValidationError

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import Article, ArticleStatus, StatusFilter, is_valid_id, normalize_tags, utc_now
from content_graph.domain.search import ArticleView
from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork, open_repositories


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "summary", "tags", "body", "status"})


def _invalid_id(kind: str, value: str) -> DbResult[Any]:
    logger.warning("Rejected malformed %s id %r", kind, value)
    return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"The provided {kind} ID '{value}' has an invalid format.")


@instrumented("create_article")
async def create_article(
    coordinator: TransactionCoordinator,
    *,
    title: str,
    summary: str,
    tags: list[str],
    body: str,
    author_id: str,
    author_name: str,
    status: ArticleStatus = "draft",
) -> DbResult[str]:
    """Insert an article and link it to its author in one unit of work.

    Every failure is reported as ``TRANSACTION_ERROR``; a missing author is
    distinguishable only through ``DbError.cause == NOT_FOUND``.
    """
    try:
        article = Article.create(
            title=title,
            summary=summary,
            tags=tags,
            body=body,
            author_id=author_id,
            author_name=author_name,
            status=status,
        )
    except ValidationError as exc:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Invalid article: {exc.errors()[0]['msg']}")

    async def work(uow: AbstractUnitOfWork) -> str:
        article_id = await uow.articles.add(article)
        if not article_id:
            raise TransactionAbort("Article insert produced no identifier")
        if not await uow.users.add_article(author_id, article_id):
            raise TransactionAbort(f"Author {author_id} does not exist", ErrorCode.NOT_FOUND)
        return article_id

    result = await coordinator.run("create_article", work)
    if result.ok:
        logger.info("Created article %s for author %s", result.data, author_id)
    return result


@instrumented("delete_article")
async def delete_article(coordinator: TransactionCoordinator, article_id: str) -> DbResult[None]:
    """Delete an article and pull its id from every user's ``likes`` set.

    The author's ``articles`` set is cleaned up in the same unit. Comments of
    the article are left in place.
    """
    if not is_valid_id(article_id):
        return _invalid_id("article", article_id)

    async def work(uow: AbstractUnitOfWork) -> None:
        article = await uow.articles.get(article_id)
        if article is None or not await uow.articles.delete(article_id):
            raise TransactionAbort(f"Article with ID {article_id} not found.", ErrorCode.NOT_FOUND)
        unliked = await uow.users.remove_like_from_all(article_id)
        await uow.users.remove_article(article.author_id, article_id)
        logger.debug("Removed article %s from %d like sets", article_id, unliked)

    result = await coordinator.run("delete_article", work, surface_codes={ErrorCode.NOT_FOUND})
    if result.ok:
        logger.info("Deleted article %s", article_id)
    return result


@instrumented("get_article_by_id")
async def get_article_by_id(store: SqliteStore, article_id: str) -> DbResult[Article]:
    """Fetch the full article document."""
    if not is_valid_id(article_id):
        return _invalid_id("article", article_id)
    try:
        async with open_repositories(store) as repos:
            article = await repos.articles.get(article_id)
    except sqlite3.Error as exc:
        logger.exception("Failed to load article %s", article_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    if article is None:
        return DbResult.fail(ErrorCode.NOT_FOUND, f"Article with ID {article_id} not found.")
    return DbResult.success(article)


@instrumented("update_article")
async def update_article(
    coordinator: TransactionCoordinator, article_id: str, fields: dict[str, Any]
) -> DbResult[Article]:
    """Apply an edit to title, summary, tags, body or status and return the result."""
    if not is_valid_id(article_id):
        return _invalid_id("article", article_id)

    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "status" in fields and fields["status"] not in get_args(ArticleStatus):
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Unknown article status {fields['status']!r}")

    changes = dict(fields)
    if "tags" in changes:
        changes["tags"] = normalize_tags(list(changes["tags"] or []))

    async def work(uow: AbstractUnitOfWork) -> Article:
        if not await uow.articles.update_fields(article_id, changes):
            raise TransactionAbort(f"Article with ID {article_id} not found.", ErrorCode.NOT_FOUND)
        article = await uow.articles.get(article_id)
        if article is None:
            raise TransactionAbort(f"Article with ID {article_id} vanished during update")
        return article

    return await coordinator.run("update_article", work, surface_codes={ErrorCode.NOT_FOUND})


@instrumented("publish_draft")
async def publish_draft(coordinator: TransactionCoordinator, article_id: str, author_id: str) -> DbResult[Article]:
    """Publish the author's own draft once title, summary and body are filled in."""
    if not is_valid_id(article_id):
        return _invalid_id("article", article_id)

    async def work(uow: AbstractUnitOfWork) -> Article:
        article = await uow.articles.get(article_id)
        if article is None:
            raise TransactionAbort(f"Draft with ID {article_id} not found.", ErrorCode.NOT_FOUND)
        if article.author_id != author_id:
            raise TransactionAbort("Only the author can publish this draft.", ErrorCode.VALIDATION_ERROR)
        if article.status != "draft":
            raise TransactionAbort("Article is already published.", ErrorCode.VALIDATION_ERROR)
        if not article.is_complete():
            raise TransactionAbort(
                "Title, summary and body are required before publishing.", ErrorCode.VALIDATION_ERROR
            )
        await uow.articles.update_fields(article_id, {"status": "published"})
        published = await uow.articles.get(article_id)
        if published is None:
            raise TransactionAbort(f"Draft with ID {article_id} vanished during publish")
        return published

    return await coordinator.run(
        "publish_draft", work, surface_codes={ErrorCode.NOT_FOUND, ErrorCode.VALIDATION_ERROR}
    )


async def _list_views(
    store: SqliteStore, *, include_body: bool, description: str, **filters: Any
) -> DbResult[list[ArticleView]]:
    try:
        async with open_repositories(store) as repos:
            articles = await repos.articles.list(**filters)
    except sqlite3.Error as exc:
        logger.exception("Failed to list %s", description)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    return DbResult.success([ArticleView.from_article(article, include_body=include_body) for article in articles])


@instrumented("get_latest_articles")
async def get_latest_articles(
    store: SqliteStore,
    *,
    limit: int | None = None,
    skip: int = 0,
    status: StatusFilter = "published",
    include_body: bool = False,
) -> DbResult[list[ArticleView]]:
    """Newest articles first. No ``limit`` means every matching article."""
    return await _list_views(
        store, include_body=include_body, description="latest articles", status=status, limit=limit, skip=skip
    )


@instrumented("get_articles_by_user")
async def get_articles_by_user(
    store: SqliteStore,
    user_id: str,
    *,
    limit: int | None = None,
    skip: int = 0,
    status: StatusFilter = "all",
    include_body: bool = False,
) -> DbResult[list[ArticleView]]:
    if not is_valid_id(user_id):
        return _invalid_id("user", user_id)
    return await _list_views(
        store,
        include_body=include_body,
        description=f"articles of user {user_id}",
        status=status,
        author_id=user_id,
        limit=limit,
        skip=skip,
    )


@instrumented("get_recently_updated_articles")
async def get_recently_updated_articles(
    store: SqliteStore,
    *,
    hours: int = 24,
    limit: int = 50,
    skip: int = 0,
    status: StatusFilter = "all",
    include_body: bool = False,
) -> DbResult[list[ArticleView]]:
    """Articles updated within the last ``hours``, most recently updated first."""
    return await _list_views(
        store,
        include_body=include_body,
        description="recently updated articles",
        status=status,
        updated_since=utc_now() - timedelta(hours=hours),
        limit=limit,
        skip=skip,
    )
