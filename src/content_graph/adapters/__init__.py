"""Adapters - SQLite store and per-collection repositories."""

from content_graph.adapters.repository import (
    SEARCH_FIELDS,
    AdminRepository,
    ArticleRepository,
    CommentRepository,
    MessageRepository,
    SessionRepository,
    UserRepository,
)
from content_graph.adapters.sqlite_store import SqliteStore


__all__ = [
    "SEARCH_FIELDS",
    "AdminRepository",
    "ArticleRepository",
    "CommentRepository",
    "MessageRepository",
    "SessionRepository",
    "SqliteStore",
    "UserRepository",
]
