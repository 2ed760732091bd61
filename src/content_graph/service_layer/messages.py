"""Notification inbox. Every operation here touches a single collection, so none needs a transaction."""

from __future__ import annotations

import logging
import sqlite3

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import Message, is_valid_id
from content_graph.errors import DbResult, ErrorCode
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import open_repositories


logger = logging.getLogger(__name__)


def _invalid(kind: str, value: str) -> DbResult:
    return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"The provided {kind} ID '{value}' has an invalid format.")


@instrumented("list_messages")
async def list_messages(
    store: SqliteStore, user_id: str, *, page: int = 1, page_size: int = 20
) -> DbResult[list[Message]]:
    """One page of a user's inbox, newest first. Pages start at 1."""
    if not is_valid_id(user_id):
        return _invalid("user", user_id)
    if page < 1 or page_size < 1:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "page and page_size must be positive")
    try:
        async with open_repositories(store) as repos:
            messages = await repos.messages.list_by_user(user_id, limit=page_size, skip=(page - 1) * page_size)
    except sqlite3.Error as exc:
        logger.exception("Failed to list messages for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    return DbResult.success(messages)


@instrumented("mark_message_read")
async def mark_message_read(store: SqliteStore, message_id: str) -> DbResult[None]:
    if not is_valid_id(message_id):
        return _invalid("message", message_id)
    try:
        async with open_repositories(store) as repos:
            found = await repos.messages.mark_read(message_id)
    except sqlite3.Error as exc:
        logger.exception("Failed to mark message %s read", message_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    if not found:
        return DbResult.fail(ErrorCode.NOT_FOUND, f"Message with ID {message_id} not found.")
    return DbResult.success(None)


@instrumented("mark_all_messages_read")
async def mark_all_messages_read(store: SqliteStore, user_id: str) -> DbResult[int]:
    """Returns how many messages changed state."""
    if not is_valid_id(user_id):
        return _invalid("user", user_id)
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.messages.mark_all_read(user_id))
    except sqlite3.Error as exc:
        logger.exception("Failed to mark messages read for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))


@instrumented("delete_read_messages")
async def delete_read_messages(store: SqliteStore, user_id: str) -> DbResult[int]:
    if not is_valid_id(user_id):
        return _invalid("user", user_id)
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.messages.delete_read(user_id))
    except sqlite3.Error as exc:
        logger.exception("Failed to delete read messages for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
