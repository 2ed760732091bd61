"""Centralized configuration for content-graph using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from content_graph.search.fuzzy import ScoringWeights


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All environment variables are validated at startup with proper types.
    Search heuristics live here rather than in the engine so they can be
    tuned without touching ranking code.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Storage
    database_path: Path = Field(default=Path("data/content_graph.db"), description="SQLite database file")
    database_pool_size: int = Field(default=4, ge=1, description="Pooled connections held by the store")
    database_busy_timeout_ms: int = Field(default=30000, ge=0, description="Lock wait before a writer gives up")

    # Sessions
    session_lifetime_hours: int = Field(
        default=168, ge=1, description="Lifetime of a login session and its user snapshot"
    )

    # Search
    search_default_limit: int = Field(default=20, ge=1, description="Page size when the caller gives none")
    search_max_limit: int = Field(default=50, ge=1, description="Upper bound on the page size")
    search_candidate_cap: int = Field(default=50, ge=1, description="Rows fetched per search stage")
    fuzzy_trigger_threshold: int = Field(
        default=3, ge=0, description="Exact-stage result count below which the fuzzy stage runs"
    )
    fuzzy_substring_min: int = Field(default=2, ge=1, description="Shortest generated query substring")
    fuzzy_substring_max: int = Field(default=3, ge=1, description="Longest generated query substring")

    # Scoring weights
    exact_base_score: float = Field(default=1000.0, gt=0, description="Score offset of exact-stage results")
    full_match_score: float = Field(default=10.0, ge=0, description="Token equals the whole field")
    edge_match_score: float = Field(default=5.0, ge=0, description="Token is a prefix or suffix of the field")
    title_weight: float = Field(default=3.0, ge=0)
    summary_weight: float = Field(default=2.0, ge=0)
    tags_weight: float = Field(default=2.0, ge=0)
    author_weight: float = Field(default=1.5, ge=0)
    body_weight: float = Field(default=1.0, ge=0)

    # Content rules
    comment_max_length: int = Field(default=1000, ge=1, description="Maximum comment length in characters")
    stats_window_hours: int = Field(default=24, ge=1, description="Window for the admin 'today' deltas")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.fuzzy_substring_min > self.fuzzy_substring_max:
            raise ValueError("FUZZY_SUBSTRING_MIN must not exceed FUZZY_SUBSTRING_MAX")
        if self.search_default_limit > self.search_max_limit:
            raise ValueError("SEARCH_DEFAULT_LIMIT must not exceed SEARCH_MAX_LIMIT")
        return self

    def scoring(self) -> ScoringWeights:
        """Build the immutable scoring constants used by the search engine."""
        return ScoringWeights(
            exact_base=self.exact_base_score,
            full_match=self.full_match_score,
            edge_match=self.edge_match_score,
            title=self.title_weight,
            summary=self.summary_weight,
            tags=self.tags_weight,
            author=self.author_weight,
            body=self.body_weight,
        )

    def normalize_limit(self, limit: int | None) -> int:
        """Clamp a caller-supplied page size into the configured bounds."""
        if limit is None:
            return self.search_default_limit
        return max(1, min(limit, self.search_max_limit))
