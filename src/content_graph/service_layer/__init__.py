"""Service layer - Business logic orchestration.

Following Cosmic Python Chapter 4, 5, 6:
- Service layer orchestrates use cases
- Multi-collection writes go through the TransactionCoordinator and a Unit of Work
- Single-document reads and writes use repositories on an autocommit connection
"""

from .admin_stats import get_admin_stats
from .admins import grant_admin, is_admin, is_super_admin, list_admins, revoke_admin
from .articles import (
    create_article,
    delete_article,
    get_article_by_id,
    get_articles_by_user,
    get_latest_articles,
    get_recently_updated_articles,
    publish_draft,
    update_article,
)
from .comments import create_comment, delete_comment, get_comments_by_article
from .coordinator import TransactionCoordinator
from .likes import toggle_like
from .messages import delete_read_messages, list_messages, mark_all_messages_read, mark_message_read
from .search_service import SearchService, search_articles
from .sessions import create_session, delete_session, find_session, purge_expired_sessions
from .unit_of_work import AbstractUnitOfWork, Repositories, SqliteUnitOfWork, open_repositories
from .users import create_user, delete_user, find_user_by_email, find_user_by_id, update_user_profile


__all__ = [
    "AbstractUnitOfWork",
    "Repositories",
    "SearchService",
    "SqliteUnitOfWork",
    "TransactionCoordinator",
    "create_article",
    "create_comment",
    "create_session",
    "create_user",
    "delete_article",
    "delete_comment",
    "delete_read_messages",
    "delete_session",
    "delete_user",
    "find_session",
    "find_user_by_email",
    "find_user_by_id",
    "get_admin_stats",
    "get_article_by_id",
    "get_articles_by_user",
    "get_comments_by_article",
    "get_latest_articles",
    "get_recently_updated_articles",
    "grant_admin",
    "is_admin",
    "is_super_admin",
    "list_admins",
    "list_messages",
    "mark_all_messages_read",
    "mark_message_read",
    "open_repositories",
    "publish_draft",
    "purge_expired_sessions",
    "revoke_admin",
    "search_articles",
    "toggle_like",
    "update_article",
    "update_user_profile",
]
