"""Query tokenization and scoring for the fuzzy search stage."""

from content_graph.search.fuzzy import (
    ScoringWeights,
    field_match_score,
    generate_substrings,
    rank_fuzzy,
    score_article,
    split_words,
    tokenize_query,
)


__all__ = [
    "ScoringWeights",
    "field_match_score",
    "generate_substrings",
    "rank_fuzzy",
    "score_article",
    "split_words",
    "tokenize_query",
]
