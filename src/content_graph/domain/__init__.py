"""Domain layer - pure business logic with no infrastructure dependencies.

Following Cosmic Python Chapter 2 (Repository Pattern) and Chapter 7 (Aggregates),
this layer contains:
- Entities: User, Article, Comment, Session, Message, Admin
- Value Objects: session snapshots, search options and results
- Domain logic: tag normalisation, identifier format, draft completeness

Key principles:
1. No dependencies on infrastructure (no database drivers)
2. Rich domain model with behavior
3. Type safety with Pydantic
"""

from content_graph.domain.model import (
    Admin,
    AdminStats,
    Article,
    ArticleStatus,
    Comment,
    LikeOutcome,
    Message,
    Session,
    SessionUserSnapshot,
    StatusFilter,
    User,
    is_valid_id,
    new_id,
    normalize_tags,
    utc_now,
)
from content_graph.domain.search import (
    ArticleView,
    FuzzySearchInfo,
    SearchHit,
    SearchOptions,
    SearchResponse,
    SearchType,
)


__all__ = [
    "Admin",
    "AdminStats",
    "Article",
    "ArticleStatus",
    "ArticleView",
    "Comment",
    "FuzzySearchInfo",
    "LikeOutcome",
    "Message",
    "SearchHit",
    "SearchOptions",
    "SearchResponse",
    "SearchType",
    "Session",
    "SessionUserSnapshot",
    "StatusFilter",
    "User",
    "is_valid_id",
    "new_id",
    "normalize_tags",
    "utc_now",
]
