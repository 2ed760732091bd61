"""Article search orchestration.

Two stages over the articles table:

1. Exact: case-insensitive substring match of the whole query against the
   fields of the chosen search type, newest first, capped.
2. Fuzzy: only when the exact stage found fewer than the trigger threshold.
   The query is tokenized (words plus short substrings), any token matching
   any field qualifies, exact hits are excluded, and the candidates are
   scored by token-match quality.

Exact hits always outrank fuzzy hits; pagination runs over the concatenation.
"""

from __future__ import annotations

import logging
import sqlite3

from content_graph.adapters.repository import SEARCH_FIELDS
from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.config import Settings
from content_graph.domain.model import Article
from content_graph.domain.search import ArticleView, FuzzySearchInfo, SearchHit, SearchOptions, SearchResponse
from content_graph.errors import DbResult, ErrorCode
from content_graph.observability.metrics import FUZZY_FALLBACKS
from content_graph.search.fuzzy import rank_fuzzy, tokenize_query
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import open_repositories


logger = logging.getLogger(__name__)


class SearchService:
    """Exact-first, fuzzy-fallback article search.

    Thresholds, caps and scoring weights come from ``Settings`` so they can be
    tuned without touching this class.
    """

    def __init__(self, store: SqliteStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()
        self.weights = self.settings.scoring()

    @instrumented("search_articles")
    async def search(self, query: str, options: SearchOptions | None = None) -> DbResult[SearchResponse]:
        """Search articles.

        Args:
            query: Free text. Blank queries are rejected with ``VALIDATION_ERROR``.
            options: Search type, status filter, pagination and body inclusion.

        Returns:
            The requested page plus ``fuzzy_info`` describing how it was built.
        """
        options = options or SearchOptions()
        needle = (query or "").strip()
        if not needle:
            return DbResult.fail(ErrorCode.VALIDATION_ERROR, "Search query must not be empty.")

        try:
            hits, info = await self._collect(needle, options)
        except sqlite3.Error as exc:
            logger.exception("Search failed for query %r", needle)
            return DbResult.fail(ErrorCode.DB_ERROR, str(exc))

        limit = self.settings.normalize_limit(options.limit)
        page = hits[options.skip : options.skip + limit]
        logger.debug(
            "Search %r (%s): exact=%d fuzzy=%d returned=%d",
            needle,
            options.search_type,
            info.exact_count,
            info.fuzzy_count,
            len(page),
        )
        return DbResult.success(SearchResponse(results=page, fuzzy_info=info))

    async def _collect(self, query: str, options: SearchOptions) -> tuple[list[SearchHit], FuzzySearchInfo]:
        settings = self.settings
        fields = SEARCH_FIELDS[options.search_type]

        async with open_repositories(self.store) as repos:
            exact = await repos.articles.find_matching(
                fields, [query], status=options.status, limit=settings.search_candidate_cap
            )

            fuzzy_engaged = len(exact) < settings.fuzzy_trigger_threshold
            tokens: list[str] = []
            fuzzy: list[Article] = []
            if fuzzy_engaged:
                FUZZY_FALLBACKS.labels().inc()
                tokens = tokenize_query(query, settings.fuzzy_substring_min, settings.fuzzy_substring_max)
                if tokens:
                    fuzzy = await repos.articles.find_matching(
                        fields,
                        tokens,
                        status=options.status,
                        exclude_ids=[article.id for article in exact],
                        limit=settings.search_candidate_cap,
                    )

        hits = [
            SearchHit(
                article=ArticleView.from_article(article, include_body=options.include_body),
                score=self.weights.exact_base - position,
                stage="exact",
            )
            for position, article in enumerate(exact)
        ]
        hits.extend(
            SearchHit(
                article=ArticleView.from_article(article, include_body=options.include_body),
                score=score,
                stage="fuzzy",
            )
            for article, score in rank_fuzzy(fuzzy, tokens, self.weights)
        )

        info = FuzzySearchInfo(
            original_query=query,
            exact_count=len(exact),
            fuzzy_count=len(fuzzy),
            total_count=len(hits),
            fuzzy_engaged=fuzzy_engaged,
            is_fuzzy_search=fuzzy_engaged and not exact,
            tokens=tokens,
        )
        return hits, info


async def search_articles(
    store: SqliteStore,
    query: str,
    options: SearchOptions | None = None,
    *,
    settings: Settings | None = None,
) -> DbResult[SearchResponse]:
    """Function-style entry point over ``SearchService``."""
    return await SearchService(store, settings).search(query, options)
