"""Domain model - entities and value objects.

Following Cosmic Python principles:
- Domain model has NO dependencies on infrastructure
- Entities have identity and can change over time
- Value Objects are immutable and defined by their attributes
- Uses Pydantic dataclasses for validation at construction

Redundant references (``User.articles``, ``User.likes`` and ``Article.likes``)
are plain fields here; keeping them in step is the job of the service layer,
which only mutates them inside a unit of work.
"""

from datetime import datetime, timedelta, timezone
import re
import secrets
from typing import Literal, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.dataclasses import dataclass


ArticleStatus = Literal["draft", "published"]
StatusFilter = Literal["draft", "published", "all"]
MessageType = Literal["comment", "like"]

_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def new_id() -> str:
    """Generate a 24-character hex identifier."""
    return secrets.token_hex(12)


def is_valid_id(value: object) -> bool:
    """Check identifier format without touching the store."""
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def new_session_id() -> str:
    """Opaque session token, unrelated to the user's identity."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim and lowercase tags, dropping empties. Duplicates are kept."""
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


@dataclass
class User:
    """User aggregate.

    ``articles`` and ``likes`` are membership sets stored as lists; order carries
    no meaning.
    """

    id: str
    name: str
    email: str
    password_hash: str
    signature: str = ""
    articles: list[str] = Field(default_factory=list)
    likes: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(cls, name: str, email: str, password_hash: str) -> Self:
        now = utc_now()
        return cls(
            id=new_id(),
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

    def has_liked(self, article_id: str) -> bool:
        return article_id in self.likes

    def owns(self, article_id: str) -> bool:
        return article_id in self.articles


@dataclass
class Article:
    """Article aggregate root.

    ``likes`` is a denormalized counter of users whose ``likes`` set holds this
    article. ``comments`` lists the ids of live comments.
    """

    id: str
    title: str
    summary: str
    author_id: str
    author_name: str
    body: str
    tags: list[str] = Field(default_factory=list)
    status: ArticleStatus = "draft"
    likes: int = 0
    comments: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Article):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(
        cls,
        *,
        title: str,
        summary: str,
        tags: list[str],
        body: str,
        author_id: str,
        author_name: str,
        status: ArticleStatus = "draft",
    ) -> Self:
        now = utc_now()
        return cls(
            id=new_id(),
            title=title,
            summary=summary,
            tags=normalize_tags(tags),
            author_id=author_id,
            author_name=author_name,
            body=body,
            status=status,
            likes=0,
            comments=[],
            created_at=now,
            updated_at=now,
        )

    def is_complete(self) -> bool:
        """A draft can be published only with title, summary and body filled in."""
        return bool(self.title.strip() and self.summary.strip() and self.body.strip())


@dataclass
class Comment:
    """Comment entity, owned by one article and one author."""

    id: str
    article_id: str
    author_id: str
    author_name: str
    content: str
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def create(cls, *, article_id: str, author_id: str, author_name: str, content: str) -> Self:
        return cls(
            id=new_id(),
            article_id=article_id,
            author_id=author_id,
            author_name=author_name,
            content=content,
            created_at=utc_now(),
        )


@dataclass(frozen=True)
class SessionUserSnapshot:
    """User display fields captured when the session was created.

    Never refreshed from the live user: staleness is bounded by the session
    lifetime.
    """

    user_id: str
    name: str
    email: str
    articles: tuple[str, ...] = ()
    likes: tuple[str, ...] = ()

    @classmethod
    def of(cls, user: User) -> Self:
        return cls(
            user_id=user.id,
            name=user.name,
            email=user.email,
            articles=tuple(user.articles),
            likes=tuple(user.likes),
        )


@dataclass
class Session:
    """Login session with an absolute expiry."""

    id: str
    user_id: str
    user_data: SessionUserSnapshot
    expires_at: datetime

    @classmethod
    def start(cls, user: User, lifetime: timedelta) -> Self:
        return cls(
            id=new_session_id(),
            user_id=user.id,
            user_data=SessionUserSnapshot.of(user),
            expires_at=utc_now() + lifetime,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utc_now())


@dataclass
class Message:
    """Notification addressed to a user about activity on their article."""

    id: str
    user_id: str
    type: MessageType
    article_id: str
    article_title: str
    from_user_id: str
    from_user_name: str
    created_at: datetime = Field(default_factory=utc_now)
    is_read: bool = False
    comment_id: str | None = None
    comment_content: str | None = None

    @classmethod
    def like(cls, article: Article, *, from_user_id: str, from_user_name: str) -> Self:
        return cls(
            id=new_id(),
            user_id=article.author_id,
            type="like",
            article_id=article.id,
            article_title=article.title,
            from_user_id=from_user_id,
            from_user_name=from_user_name,
        )

    @classmethod
    def comment(cls, article: Article, comment: Comment) -> Self:
        return cls(
            id=new_id(),
            user_id=article.author_id,
            type="comment",
            article_id=article.id,
            article_title=article.title,
            from_user_id=comment.author_id,
            from_user_name=comment.author_name,
            comment_id=comment.id,
            comment_content=comment.content,
        )


@dataclass
class Admin:
    """Admin grant for a user. Lower ``priority`` outranks higher."""

    id: str
    user_id: str
    priority: int = Field(default=1, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AdminStats(BaseModel):
    """Dashboard rollup. Failed counts degrade to zero."""

    model_config = ConfigDict(frozen=True)

    total_users: int = 0
    total_articles: int = 0
    total_comments: int = 0
    today_users: int = 0
    today_articles: int = 0
    today_comments: int = 0

    @computed_field
    @property
    def today_new(self) -> int:
        return self.today_users + self.today_articles + self.today_comments


class LikeOutcome(BaseModel):
    """Result of a like toggle."""

    model_config = ConfigDict(frozen=True)

    action: Literal["liked", "unliked"]
    new_count: int
