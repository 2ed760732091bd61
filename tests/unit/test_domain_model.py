"""Unit tests for domain entities, value objects and result types."""

from datetime import timedelta

from pydantic import ValidationError
import pytest

from content_graph.domain.model import (
    AdminStats,
    Article,
    Comment,
    Message,
    Session,
    SessionUserSnapshot,
    User,
    is_valid_id,
    new_id,
    new_session_id,
    normalize_tags,
    utc_now,
)
from content_graph.errors import DbResult, ErrorCode, TransactionAbort


def _user(**overrides) -> User:
    user = User.create("  Alice ", "  Alice@Example.COM ", "hashed")
    for key, value in overrides.items():
        setattr(user, key, value)
    return user


@pytest.mark.unit
class TestIdentifiers:
    """Identifier generation and validation."""

    def test_new_id_is_valid(self):
        assert is_valid_id(new_id())

    def test_ids_are_unique(self):
        assert len({new_id() for _ in range(100)}) == 100

    @pytest.mark.parametrize("value", ["", "abc", "Z" * 24, "0" * 25, None, 42, "0123456789ABCDEF01234567"])
    def test_rejects_malformed(self, value):
        assert not is_valid_id(value)

    def test_session_id_is_not_an_entity_id(self):
        assert not is_valid_id(new_session_id())


@pytest.mark.unit
class TestNormalizeTags:
    def test_trims_lowercases_and_drops_empties(self):
        assert normalize_tags(["  Python ", "", "   ", "ASYNC"]) == ["python", "async"]

    def test_keeps_duplicates(self):
        assert normalize_tags(["a", "A"]) == ["a", "a"]


@pytest.mark.unit
class TestUser:
    def test_create_normalizes(self):
        user = _user()
        assert user.name == "Alice"
        assert user.email == "alice@example.com"
        assert user.articles == []
        assert user.likes == []
        assert user.signature == ""

    def test_membership_helpers(self):
        article_id = new_id()
        user = _user(likes=[article_id], articles=[article_id])
        assert user.has_liked(article_id)
        assert user.owns(article_id)
        assert not user.has_liked(new_id())

    def test_identity_equality(self):
        user = _user()
        clone = User(id=user.id, name="Other", email="other@example.com", password_hash="x")
        assert user == clone
        assert hash(user) == hash(clone)


@pytest.mark.unit
class TestArticle:
    def test_create_defaults(self):
        article = Article.create(
            title="T", summary="S", tags=[" Web "], body="B", author_id=new_id(), author_name="Alice"
        )
        assert article.status == "draft"
        assert article.likes == 0
        assert article.comments == []
        assert article.tags == ["web"]
        assert article.created_at == article.updated_at

    def test_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            Article.create(
                title="T", summary="S", tags=[], body="B", author_id=new_id(), author_name="A", status="archived"
            )

    @pytest.mark.parametrize(
        ("title", "summary", "body", "complete"),
        [("T", "S", "B", True), (" ", "S", "B", False), ("T", "", "B", False), ("T", "S", "\n", False)],
    )
    def test_is_complete(self, title, summary, body, complete):
        article = Article.create(
            title=title, summary=summary, tags=[], body=body, author_id=new_id(), author_name="A"
        )
        assert article.is_complete() is complete


@pytest.mark.unit
class TestSession:
    def test_snapshot_is_frozen_copy(self):
        user = _user(likes=[new_id()])
        session = Session.start(user, timedelta(hours=1))
        user.likes.append(new_id())
        assert session.user_data.likes == tuple(user.likes[:1])
        assert session.user_data.name == "Alice"

    def test_snapshot_is_immutable(self):
        snapshot = SessionUserSnapshot.of(_user())
        with pytest.raises((AttributeError, TypeError, ValidationError)):
            snapshot.name = "Mallory"

    def test_expiry(self):
        user = _user()
        assert not Session.start(user, timedelta(hours=1)).is_expired()
        assert Session.start(user, timedelta(seconds=-1)).is_expired()
        live = Session.start(user, timedelta(hours=1))
        assert live.is_expired(utc_now() + timedelta(hours=2))


@pytest.mark.unit
class TestMessages:
    def test_like_message_addresses_author(self):
        article = Article.create(title="T", summary="S", tags=[], body="B", author_id=new_id(), author_name="A")
        message = Message.like(article, from_user_id="liker", from_user_name="Bob")
        assert message.user_id == article.author_id
        assert message.type == "like"
        assert message.is_read is False
        assert message.comment_id is None

    def test_comment_message_carries_comment(self):
        article = Article.create(title="T", summary="S", tags=[], body="B", author_id=new_id(), author_name="A")
        comment = Comment.create(article_id=article.id, author_id=new_id(), author_name="Bob", content="Nice")
        message = Message.comment(article, comment)
        assert message.type == "comment"
        assert message.comment_id == comment.id
        assert message.comment_content == "Nice"
        assert message.article_title == "T"


@pytest.mark.unit
class TestAdminStats:
    def test_today_new_is_sum(self):
        stats = AdminStats(total_users=5, today_users=1, today_articles=2, today_comments=3)
        assert stats.today_new == 6
        assert stats.model_dump()["today_new"] == 6

    def test_defaults_to_zero(self):
        assert AdminStats().today_new == 0


@pytest.mark.unit
class TestDbResult:
    def test_success(self):
        result = DbResult.success("abc")
        assert result.ok
        assert result.data == "abc"
        assert result.error is None

    def test_fail(self):
        result = DbResult.fail(ErrorCode.NOT_FOUND, "missing")
        assert not result.ok
        assert result.data is None
        assert result.error.code == ErrorCode.NOT_FOUND
        assert result.error.cause is None

    def test_fail_keeps_cause(self):
        result = DbResult.fail(ErrorCode.TRANSACTION_ERROR, "boom", cause=ErrorCode.NOT_FOUND)
        assert result.error.cause == ErrorCode.NOT_FOUND

    def test_codes_are_strings(self):
        assert ErrorCode.INVALID_ID_FORMAT == "INVALID_ID_FORMAT"

    def test_transaction_abort_carries_code(self):
        abort = TransactionAbort("nope", ErrorCode.NOT_FOUND)
        assert abort.code == ErrorCode.NOT_FOUND
        assert str(abort) == "nope"
        assert TransactionAbort("bare").code is None
