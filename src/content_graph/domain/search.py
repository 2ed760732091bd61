"""Domain models for article search.

Value Objects are immutable (frozen=True). These models carry the two-stage
search result together with enough metadata for "did you mean" messaging.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from content_graph.domain.model import Article, StatusFilter


SearchType = Literal["title", "tags", "author", "content", "all"]


class SearchOptions(BaseModel):
    """Caller-supplied search parameters."""

    model_config = ConfigDict(frozen=True)

    search_type: SearchType = "all"
    status: StatusFilter = "published"
    limit: int | None = Field(default=None, ge=1)
    skip: int = Field(default=0, ge=0)
    include_body: bool = False


class ArticleView(BaseModel):
    """Client-safe projection of an article. ``body`` only when requested."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    summary: str
    tags: list[str]
    author_id: str
    author_name: str
    created_at: datetime
    status: str
    likes: int
    body: str | None = None

    @classmethod
    def from_article(cls, article: Article, *, include_body: bool = False) -> "ArticleView":
        return cls(
            id=article.id,
            title=article.title,
            summary=article.summary,
            tags=list(article.tags),
            author_id=article.author_id,
            author_name=article.author_name,
            created_at=article.created_at,
            status=article.status,
            likes=article.likes,
            body=article.body if include_body else None,
        )


class SearchHit(BaseModel):
    """One ranked result and why it ranked where it did."""

    model_config = ConfigDict(frozen=True)

    article: ArticleView
    score: float
    stage: Literal["exact", "fuzzy"]


class FuzzySearchInfo(BaseModel):
    """Explains how the result list was produced.

    ``fuzzy_engaged`` is true whenever the fuzzy stage ran; ``is_fuzzy_search``
    only when it ran because the exact stage found nothing, which is when a
    caller should show a "showing similar results" hint.
    """

    model_config = ConfigDict(frozen=True)

    original_query: str
    exact_count: int = 0
    fuzzy_count: int = 0
    total_count: int = 0
    fuzzy_engaged: bool = False
    is_fuzzy_search: bool = False
    tokens: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Paginated, ranked page of results."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchHit]
    fuzzy_info: FuzzySearchInfo
