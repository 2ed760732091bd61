"""Unit tests for fuzzy-stage tokenization and scoring."""

from datetime import datetime, timedelta, timezone

import pytest

from content_graph.domain.model import Article, new_id
from content_graph.search.fuzzy import (
    ScoringWeights,
    field_match_score,
    generate_substrings,
    rank_fuzzy,
    score_article,
    split_words,
    tokenize_query,
)


def _article(title: str, *, summary: str = "", body: str = "", tags=None, author: str = "Someone", age: int = 0):
    created = datetime(2024, 1, 1, tzinfo=timezone.utc) - timedelta(minutes=age)
    return Article(
        id=new_id(),
        title=title,
        summary=summary,
        author_id=new_id(),
        author_name=author,
        body=body,
        tags=tags or [],
        status="published",
        created_at=created,
        updated_at=created,
    )


@pytest.mark.unit
class TestSplitWords:
    """Tests for word splitting."""

    def test_splits_on_whitespace_and_punctuation(self):
        assert split_words("Python, async/await!") == ["python", "async", "await"]

    def test_underscore_is_a_separator(self):
        assert split_words("snake_case") == ["snake", "case"]

    def test_keeps_cjk_runs_together(self):
        assert split_words("JavaScript 基础教程") == ["javascript", "基础教程"]

    def test_empty_query(self):
        assert split_words("   ") == []


@pytest.mark.unit
class TestGenerateSubstrings:
    """Tests for contiguous substring generation."""

    def test_two_and_three_character_windows(self):
        assert generate_substrings("abcd") == ["ab", "abc", "bc", "bcd", "cd"]

    def test_single_character_has_no_substrings(self):
        assert generate_substrings("a") == []

    def test_skips_windows_crossing_separators(self):
        assert generate_substrings("ab cd") == ["ab", "cd"]

    def test_cjk_substrings(self):
        assert generate_substrings("基础教程") == ["基础", "基础教", "础教", "础教程", "教程"]

    def test_deduplicates(self):
        assert generate_substrings("aaaa") == ["aa", "aaa"]

    def test_custom_lengths(self):
        assert generate_substrings("abcd", min_length=4, max_length=4) == ["abcd"]


@pytest.mark.unit
class TestTokenizeQuery:
    """Tests for the combined fuzzy token list."""

    def test_excludes_whole_query(self):
        tokens = tokenize_query("Rust")
        assert "rust" not in tokens
        assert tokens == ["ru", "rus", "us", "ust", "st"]

    def test_words_come_before_substrings(self):
        tokens = tokenize_query("go rust")
        assert tokens[:2] == ["go", "rust"]
        assert "ru" in tokens

    def test_short_query_yields_nothing(self):
        assert tokenize_query("a") == []

    def test_blank_query(self):
        assert tokenize_query("  ") == []

    def test_lowercases(self):
        assert all(token == token.lower() for token in tokenize_query("AbC DeF"))


@pytest.mark.unit
class TestFieldMatchScore:
    """Tests for per-field token scoring."""

    weights = ScoringWeights()

    def test_full_field_match(self):
        assert field_match_score(["python"], "Python", 3.0, self.weights) == 30.0

    def test_prefix_and_suffix_match(self):
        assert field_match_score(["py"], "python", 3.0, self.weights) == 15.0
        assert field_match_score(["on"], "python", 2.0, self.weights) == 10.0

    def test_inner_match_scores_by_length(self):
        assert field_match_score(["yth"], "python", 1.0, self.weights) == 3.0

    def test_missing_tokens_score_zero(self):
        assert field_match_score(["zz"], "python", 3.0, self.weights) == 0.0

    def test_empty_field(self):
        assert field_match_score(["py"], "", 3.0, self.weights) == 0.0
        assert field_match_score(["py"], None, 3.0, self.weights) == 0.0

    def test_scores_add_up_across_tokens(self):
        assert field_match_score(["py", "yth"], "python", 1.0, self.weights) == 8.0


@pytest.mark.unit
class TestRanking:
    """Tests for article scoring and ordering."""

    def test_title_outweighs_body(self):
        weights = ScoringWeights()
        in_title = _article("async tips", body="nothing")
        in_body = _article("nothing", body="async tips")
        assert score_article(in_title, ["async"], weights) > score_article(in_body, ["async"], weights)

    def test_tags_are_scored_as_one_field(self):
        weights = ScoringWeights()
        article = _article("x", tags=["python", "web"])
        assert score_article(article, ["web"], weights) == weights.edge_match * weights.tags

    def test_no_tokens_scores_zero(self):
        assert score_article(_article("python"), [], ScoringWeights()) == 0.0

    def test_rank_descending(self):
        weak = _article("the python notes")
        strong = _article("python")
        ranked = rank_fuzzy([weak, strong], ["python"], ScoringWeights())
        assert [article.id for article, _ in ranked] == [strong.id, weak.id]

    def test_ties_keep_input_order(self):
        first = _article("xy notes", age=0)
        second = _article("xy notes", age=5)
        ranked = rank_fuzzy([first, second], ["xy"], ScoringWeights())
        assert [article.id for article, _ in ranked] == [first.id, second.id]
        assert ranked[0][1] == ranked[1][1]

    def test_custom_weights(self):
        article = _article("python")
        heavy = ScoringWeights(title=10.0)
        assert score_article(article, ["python"], heavy) == 100.0
