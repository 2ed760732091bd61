"""Comment use cases. A comment's id is in its article's ``comments`` set iff the comment exists."""

from __future__ import annotations

import logging
import sqlite3

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import Comment, Message, is_valid_id
from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork, open_repositories


logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 1000


def validate_content(content: str, max_length: int = DEFAULT_MAX_LENGTH) -> str | None:
    """Return a rejection message, or None when the content is acceptable."""
    if not isinstance(content, str) or not content.strip():
        return "Comment content is required and cannot be empty."
    if len(content) > max_length:
        return f"Comment content cannot exceed {max_length} characters."
    return None


@instrumented("create_comment")
async def create_comment(
    coordinator: TransactionCoordinator,
    *,
    article_id: str,
    author_id: str,
    author_name: str,
    content: str,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> DbResult[str]:
    """Insert a comment, attach it to its article and notify the article's author.

    A missing article aborts the whole unit, so no comment is left behind
    without a parent.
    """
    if problem := validate_content(content, max_length):
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, problem)
    for kind, value in (("article", article_id), ("user", author_id)):
        if not is_valid_id(value):
            return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"The provided {kind} ID '{value}' has an invalid format.")

    comment = Comment.create(
        article_id=article_id,
        author_id=author_id,
        author_name=author_name,
        content=content.strip(),
    )

    async def work(uow: AbstractUnitOfWork) -> str:
        comment_id = await uow.comments.add(comment)
        if not comment_id:
            raise TransactionAbort("Comment insert produced no identifier")
        article = await uow.articles.get(article_id)
        if article is None or not await uow.articles.add_comment(article_id, comment_id):
            raise TransactionAbort(f"Article with ID {article_id} not found.", ErrorCode.NOT_FOUND)
        await uow.messages.add(Message.comment(article, comment))
        return comment_id

    result = await coordinator.run("create_comment", work, surface_codes={ErrorCode.NOT_FOUND})
    if result.ok:
        logger.info("Comment %s created and linked to article %s", result.data, article_id)
    return result


@instrumented("delete_comment")
async def delete_comment(coordinator: TransactionCoordinator, comment_id: str) -> DbResult[None]:
    """Delete a comment and detach it from its article.

    The parent may already be gone (article deletion leaves comments behind);
    the comment is still removed.
    """
    if not is_valid_id(comment_id):
        return DbResult.fail(
            ErrorCode.INVALID_ID_FORMAT, f"The provided comment ID '{comment_id}' has an invalid format."
        )

    async def work(uow: AbstractUnitOfWork) -> None:
        comment = await uow.comments.get(comment_id)
        if comment is None or not await uow.comments.delete(comment_id):
            raise TransactionAbort(f"Comment with ID {comment_id} not found.", ErrorCode.NOT_FOUND)
        if not await uow.articles.remove_comment(comment.article_id, comment_id):
            logger.warning("Comment %s pointed at missing article %s", comment_id, comment.article_id)

    result = await coordinator.run("delete_comment", work, surface_codes={ErrorCode.NOT_FOUND})
    if result.ok:
        logger.info("Deleted comment %s", comment_id)
    return result


@instrumented("get_comments_by_article")
async def get_comments_by_article(
    store: SqliteStore, article_id: str, *, limit: int = 50, skip: int = 0
) -> DbResult[list[Comment]]:
    """Comments of one article, newest first."""
    if not is_valid_id(article_id):
        return DbResult.fail(
            ErrorCode.INVALID_ID_FORMAT, f"The provided article ID '{article_id}' has an invalid format."
        )
    try:
        async with open_repositories(store) as repos:
            comments = await repos.comments.list_by_article(article_id, limit=limit, skip=skip)
    except sqlite3.Error as exc:
        logger.exception("Failed to fetch comments for article %s", article_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    return DbResult.success(comments)
