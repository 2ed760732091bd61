"""Fuzzy fallback matching for degraded-match article search.

When the literal query matches too few articles, the query is broken into
smaller tokens that are matched independently:
- Words split on whitespace and punctuation
- Every contiguous 2- and 3-character substring made of word characters

Tokens equal to the whole normalized query are dropped because the exact
stage already looked for them. Substring tokens work for scripts without
word separators (e.g. Chinese), where "基础教程" yields "基础", "础教", ...
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import re

from content_graph.domain.model import Article


_WORD_SPLIT = re.compile(r"[\W_]+", re.UNICODE)
_WORD_ONLY = re.compile(r"^[^\W_]+$", re.UNICODE)


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Scoring constants for fuzzy results.

    ``exact_base`` is the offset that keeps every exact-stage result above any
    fuzzy one; the remaining values score a single token against a field.
    """

    exact_base: float = 1000.0
    full_match: float = 10.0
    edge_match: float = 5.0
    title: float = 3.0
    summary: float = 2.0
    tags: float = 2.0
    author: float = 1.5
    body: float = 1.0


def split_words(query: str) -> list[str]:
    """Split a query into lowercase words on whitespace and punctuation.

    Examples:
        >>> split_words("Python, async/await!")
        ['python', 'async', 'await']
    """
    return [word for word in _WORD_SPLIT.split(query.casefold()) if word]


def generate_substrings(query: str, min_length: int = 2, max_length: int = 3) -> list[str]:
    """Generate contiguous substrings of the normalized query.

    Substrings that contain whitespace or punctuation are skipped. Order is
    by starting position, then by length; duplicates are removed.

    Examples:
        >>> generate_substrings("abcd")
        ['ab', 'abc', 'bc', 'bcd', 'cd']
        >>> generate_substrings("a")
        []
    """
    text = query.casefold().strip()
    substrings: list[str] = []
    seen: set[str] = set()
    for start in range(len(text)):
        for length in range(min_length, max_length + 1):
            end = start + length
            if end > len(text):
                break
            candidate = text[start:end]
            if candidate in seen or not _WORD_ONLY.match(candidate):
                continue
            seen.add(candidate)
            substrings.append(candidate)
    return substrings


def tokenize_query(query: str, min_length: int = 2, max_length: int = 3) -> list[str]:
    """Build the fuzzy token list for a query.

    Args:
        query: Raw user query.
        min_length: Shortest substring to generate.
        max_length: Longest substring to generate.

    Returns:
        Deduplicated tokens: words first, then substrings. Empty when the
        query is shorter than ``min_length`` and has no separable words.
    """
    normalized = query.casefold().strip()
    if not normalized:
        return []

    tokens: list[str] = []
    seen = {normalized}
    for token in (*split_words(normalized), *generate_substrings(normalized, min_length, max_length)):
        if token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def field_match_score(tokens: Iterable[str], text: str | None, weight: float, weights: ScoringWeights) -> float:
    """Score how well tokens match one field.

    For each token found in the field:
    - whole field equals the token: ``full_match * weight``
    - field starts or ends with the token: ``edge_match * weight``
    - anywhere else: ``len(token) * weight``
    """
    if not text:
        return 0.0

    target = text.casefold()
    score = 0.0
    for token in tokens:
        if token not in target:
            continue
        if target == token:
            score += weights.full_match * weight
        elif target.startswith(token) or target.endswith(token):
            score += weights.edge_match * weight
        else:
            score += max(1, len(token)) * weight
    return score


def score_article(article: Article, tokens: Sequence[str], weights: ScoringWeights) -> float:
    """Sum weighted token-match quality across the searchable fields."""
    if not tokens:
        return 0.0
    return (
        field_match_score(tokens, article.title, weights.title, weights)
        + field_match_score(tokens, article.summary, weights.summary, weights)
        + field_match_score(tokens, " ".join(article.tags), weights.tags, weights)
        + field_match_score(tokens, article.author_name, weights.author, weights)
        + field_match_score(tokens, article.body, weights.body, weights)
    )


def rank_fuzzy(articles: Sequence[Article], tokens: Sequence[str], weights: ScoringWeights) -> list[tuple[Article, float]]:
    """Order fuzzy candidates by descending score.

    ``articles`` must already be in recency order; the sort is stable so equal
    scores keep that order.
    """
    scored = [(article, score_article(article, tokens, weights)) for article in articles]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored
