"""SQLite repositories, one per collection.

Each repository is bound to a single connection. Inside a unit of work that
connection holds an open ``BEGIN IMMEDIATE`` transaction, so every call made
through the repository joins it. Outside a unit of work the connection runs
in autocommit mode, which is enough for single-document writes.

Array-valued fields are JSON columns. Membership-set updates (add to set,
remove from set) read the current array and write it back; that is only
race-free under the write lock a unit of work holds.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
import functools
import logging
import sqlite3
from typing import Any, TypeVar

import anyio
import orjson

from content_graph.domain.model import (
    Admin,
    Article,
    Comment,
    Message,
    Session,
    SessionUserSnapshot,
    User,
    utc_now,
)


logger = logging.getLogger(__name__)

R = TypeVar("R")

# Searchable columns per search type. "tags" is a JSON array matched per element.
SEARCH_FIELDS: dict[str, tuple[str, ...]] = {
    "title": ("title",),
    "tags": ("tags",),
    "author": ("author_name",),
    "content": ("body",),
    "all": ("title", "summary", "body", "tags", "author_name"),
}

_ARTICLE_COLUMNS = (
    "id, title, summary, tags, author_id, author_name, body, status, likes, comments, created_at, updated_at"
)
_RECENCY_ORDER = "ORDER BY created_at DESC, rowid DESC"


def _ts(value: datetime) -> float:
    return value.timestamp()


def _dt(value: float) -> datetime:
    return datetime.fromtimestamp(value, timezone.utc)


def _dump(value: Iterable[str]) -> str:
    return orjson.dumps(list(value)).decode("utf-8")


def _load(value: str | None) -> list[str]:
    if not value:
        return []
    return list(orjson.loads(value))


def _match_clause(column: str) -> str:
    if column == "tags":
        return "EXISTS (SELECT 1 FROM json_each(articles.tags) WHERE icontains(json_each.value, ?))"
    return f"icontains({column}, ?)"


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        signature=row["signature"],
        articles=_load(row["articles"]),
        likes=_load(row["likes"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def _article_from_row(row: sqlite3.Row) -> Article:
    return Article(
        id=row["id"],
        title=row["title"],
        summary=row["summary"],
        tags=_load(row["tags"]),
        author_id=row["author_id"],
        author_name=row["author_name"],
        body=row["body"],
        status=row["status"],
        likes=row["likes"],
        comments=_load(row["comments"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def _comment_from_row(row: sqlite3.Row) -> Comment:
    return Comment(
        id=row["id"],
        article_id=row["article_id"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        content=row["content"],
        created_at=_dt(row["created_at"]),
    )


def _session_from_row(row: sqlite3.Row) -> Session:
    snapshot = orjson.loads(row["user_data"])
    return Session(
        id=row["id"],
        user_id=row["user_id"],
        user_data=SessionUserSnapshot(**snapshot),
        expires_at=_dt(row["expires_at"]),
    )


def _message_from_row(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        article_id=row["article_id"],
        article_title=row["article_title"],
        from_user_id=row["from_user_id"],
        from_user_name=row["from_user_name"],
        comment_id=row["comment_id"],
        comment_content=row["comment_content"],
        created_at=_dt(row["created_at"]),
        is_read=bool(row["is_read"]),
    )


def _admin_from_row(row: sqlite3.Row) -> Admin:
    return Admin(
        id=row["id"],
        user_id=row["user_id"],
        priority=row["priority"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


class SqliteRepository:
    """Shared plumbing: run blocking SQL in a worker thread."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    async def _run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        return await anyio.to_thread.run_sync(functools.partial(fn, *args, **kwargs))

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return self._conn.execute(sql, params).fetchall()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        return self._conn.execute(sql, params).rowcount

    def _count(self, sql: str, params: Sequence[Any] = ()) -> int:
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def _update_set(
        self,
        table: str,
        column: str,
        row_id: str,
        transform: Callable[[list[str]], list[str]],
        *,
        touch: bool,
    ) -> bool:
        """Read-modify-write one JSON array column. Returns False if no row matched."""
        row = self._fetchone(f"SELECT {column} FROM {table} WHERE id = ?", (row_id,))
        if row is None:
            return False
        values = transform(_load(row[column]))
        if touch:
            self._execute(
                f"UPDATE {table} SET {column} = ?, updated_at = ? WHERE id = ?",
                (_dump(values), _ts(utc_now()), row_id),
            )
        else:
            self._execute(f"UPDATE {table} SET {column} = ? WHERE id = ?", (_dump(values), row_id))
        return True


def _with(value: str) -> Callable[[list[str]], list[str]]:
    return lambda items: items if value in items else [*items, value]


def _without(value: str) -> Callable[[list[str]], list[str]]:
    return lambda items: [item for item in items if item != value]


class UserRepository(SqliteRepository):
    """Users collection."""

    async def add(self, user: User) -> None:
        """Insert a user. Raises ``sqlite3.IntegrityError`` on a duplicate email."""
        await self._run(
            self._execute,
            "INSERT INTO users (id, name, email, password_hash, signature, articles, likes, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                user.id,
                user.name,
                user.email,
                user.password_hash,
                user.signature,
                _dump(user.articles),
                _dump(user.likes),
                _ts(user.created_at),
                _ts(user.updated_at),
            ),
        )

    async def get(self, user_id: str) -> User | None:
        row = await self._run(self._fetchone, "SELECT * FROM users WHERE id = ?", (user_id,))
        return _user_from_row(row) if row else None

    async def get_by_email(self, email: str) -> User | None:
        row = await self._run(self._fetchone, "SELECT * FROM users WHERE email = ?", (email,))
        return _user_from_row(row) if row else None

    async def email_taken(self, email: str, *, exclude_id: str | None = None) -> bool:
        if exclude_id is None:
            sql, params = "SELECT COUNT(*) FROM users WHERE email = ?", (email,)
        else:
            sql, params = "SELECT COUNT(*) FROM users WHERE email = ? AND id != ?", (email, exclude_id)
        return await self._run(self._count, sql, params) > 0

    async def add_article(self, user_id: str, article_id: str) -> bool:
        return await self._run(self._update_set, "users", "articles", user_id, _with(article_id), touch=True)

    async def remove_article(self, user_id: str, article_id: str) -> bool:
        return await self._run(self._update_set, "users", "articles", user_id, _without(article_id), touch=True)

    async def add_like(self, user_id: str, article_id: str) -> bool:
        """Set insertion: adding an id that is already present changes nothing."""
        return await self._run(self._update_set, "users", "likes", user_id, _with(article_id), touch=True)

    async def remove_like(self, user_id: str, article_id: str) -> bool:
        return await self._run(self._update_set, "users", "likes", user_id, _without(article_id), touch=True)

    async def remove_like_from_all(self, article_id: str) -> int:
        """Pull ``article_id`` from every user's likes. Returns users touched."""
        return await self._run(
            self._execute,
            "UPDATE users SET"
            " likes = (SELECT json_group_array(value) FROM json_each(users.likes) WHERE value != ?),"
            " updated_at = ?"
            " WHERE EXISTS (SELECT 1 FROM json_each(users.likes) WHERE value = ?)",
            (article_id, _ts(utc_now()), article_id),
        )

    async def count_liking(self, article_id: str) -> int:
        return await self._run(
            self._count,
            "SELECT COUNT(*) FROM users WHERE EXISTS (SELECT 1 FROM json_each(users.likes) WHERE value = ?)",
            (article_id,),
        )

    async def update_fields(self, user_id: str, fields: dict[str, Any]) -> bool:
        """Set scalar profile fields (name, email, signature) and bump ``updated_at``."""
        allowed = {key: value for key, value in fields.items() if key in {"name", "email", "signature"}}
        assignments = ", ".join(f"{key} = ?" for key in allowed)
        sql = f"UPDATE users SET {assignments + ', ' if assignments else ''}updated_at = ? WHERE id = ?"
        params = (*allowed.values(), _ts(utc_now()), user_id)
        return await self._run(self._execute, sql, params) > 0

    async def delete(self, user_id: str) -> bool:
        return await self._run(self._execute, "DELETE FROM users WHERE id = ?", (user_id,)) > 0

    async def count(self, *, since: datetime | None = None) -> int:
        if since is None:
            return await self._run(self._count, "SELECT COUNT(*) FROM users")
        return await self._run(self._count, "SELECT COUNT(*) FROM users WHERE created_at >= ?", (_ts(since),))


class ArticleRepository(SqliteRepository):
    """Articles collection, including the search filters."""

    async def add(self, article: Article) -> str:
        await self._run(
            self._execute,
            f"INSERT INTO articles ({_ARTICLE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                article.id,
                article.title,
                article.summary,
                _dump(article.tags),
                article.author_id,
                article.author_name,
                article.body,
                article.status,
                article.likes,
                _dump(article.comments),
                _ts(article.created_at),
                _ts(article.updated_at),
            ),
        )
        return article.id

    async def get(self, article_id: str) -> Article | None:
        row = await self._run(self._fetchone, f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE id = ?", (article_id,))
        return _article_from_row(row) if row else None

    async def update_fields(self, article_id: str, fields: dict[str, Any]) -> bool:
        """Update editable fields and bump ``updated_at``. Returns False if no row matched."""
        editable = {"title", "summary", "tags", "body", "status", "author_name"}
        values: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in editable:
                continue
            values[key] = _dump(value) if key == "tags" else value
        assignments = "".join(f"{key} = ?, " for key in values)
        sql = f"UPDATE articles SET {assignments}updated_at = ? WHERE id = ?"
        return await self._run(self._execute, sql, (*values.values(), _ts(utc_now()), article_id)) > 0

    async def delete(self, article_id: str) -> bool:
        return await self._run(self._execute, "DELETE FROM articles WHERE id = ?", (article_id,)) > 0

    async def adjust_likes(self, article_id: str, delta: int) -> int | None:
        """Add ``delta`` to the like counter. Returns the new value, None if missing."""

        def adjust() -> int | None:
            changed = self._execute(
                "UPDATE articles SET likes = likes + ?, updated_at = ? WHERE id = ?",
                (delta, _ts(utc_now()), article_id),
            )
            if not changed:
                return None
            row = self._fetchone("SELECT likes FROM articles WHERE id = ?", (article_id,))
            return int(row["likes"]) if row else None

        return await self._run(adjust)

    async def add_comment(self, article_id: str, comment_id: str) -> bool:
        return await self._run(self._update_set, "articles", "comments", article_id, _with(comment_id), touch=True)

    async def remove_comment(self, article_id: str, comment_id: str) -> bool:
        return await self._run(
            self._update_set, "articles", "comments", article_id, _without(comment_id), touch=True
        )

    async def list(
        self,
        *,
        status: str = "published",
        author_id: str | None = None,
        updated_since: datetime | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[Article]:
        """List articles newest first (by update time when ``updated_since`` is set)."""
        clauses: list[str] = []
        params: list[Any] = []
        if status != "all":
            clauses.append("status = ?")
            params.append(status)
        if author_id is not None:
            clauses.append("author_id = ?")
            params.append(author_id)
        order = _RECENCY_ORDER
        if updated_since is not None:
            clauses.append("updated_at >= ?")
            params.append(_ts(updated_since))
            order = "ORDER BY updated_at DESC, rowid DESC"
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = f"SELECT {_ARTICLE_COLUMNS} FROM articles {where} {order} LIMIT ? OFFSET ?"
        params.extend((limit if limit is not None else -1, skip))
        rows = await self._run(self._fetchall, sql, params)
        return [_article_from_row(row) for row in rows]

    async def find_matching(
        self,
        fields: Sequence[str],
        needles: Sequence[str],
        *,
        status: str = "published",
        exclude_ids: Sequence[str] = (),
        limit: int = 50,
    ) -> list[Article]:
        """Articles where any needle is a case-insensitive substring of any field.

        Results are newest first and capped at ``limit``.
        """
        if not fields or not needles:
            return []

        match_terms: list[str] = []
        params: list[Any] = []
        for needle in needles:
            for column in fields:
                match_terms.append(_match_clause(column))
                params.append(needle)

        clauses = [f"({' OR '.join(match_terms)})"]
        if status != "all":
            clauses.append("status = ?")
            params.append(status)
        if exclude_ids:
            clauses.append(f"id NOT IN ({', '.join('?' for _ in exclude_ids)})")
            params.extend(exclude_ids)

        sql = f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE {' AND '.join(clauses)} {_RECENCY_ORDER} LIMIT ?"
        params.append(limit)
        rows = await self._run(self._fetchall, sql, params)
        return [_article_from_row(row) for row in rows]

    async def count(self, *, status: str = "all", since: datetime | None = None) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if status != "all":
            clauses.append("status = ?")
            params.append(status)
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(_ts(since))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._run(self._count, f"SELECT COUNT(*) FROM articles{where}", params)


class CommentRepository(SqliteRepository):
    """Comments collection."""

    async def add(self, comment: Comment) -> str:
        await self._run(
            self._execute,
            "INSERT INTO comments (id, article_id, author_id, author_name, content, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (
                comment.id,
                comment.article_id,
                comment.author_id,
                comment.author_name,
                comment.content,
                _ts(comment.created_at),
            ),
        )
        return comment.id

    async def get(self, comment_id: str) -> Comment | None:
        row = await self._run(self._fetchone, "SELECT * FROM comments WHERE id = ?", (comment_id,))
        return _comment_from_row(row) if row else None

    async def delete(self, comment_id: str) -> bool:
        return await self._run(self._execute, "DELETE FROM comments WHERE id = ?", (comment_id,)) > 0

    async def list_by_article(self, article_id: str, *, limit: int = 50, skip: int = 0) -> list[Comment]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM comments WHERE article_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (article_id, limit, skip),
        )
        return [_comment_from_row(row) for row in rows]

    async def count(self, *, since: datetime | None = None) -> int:
        if since is None:
            return await self._run(self._count, "SELECT COUNT(*) FROM comments")
        return await self._run(self._count, "SELECT COUNT(*) FROM comments WHERE created_at >= ?", (_ts(since),))


class SessionRepository(SqliteRepository):
    """Sessions collection. Expiry is enforced on read and by ``delete_expired``."""

    async def add(self, session: Session) -> None:
        snapshot = session.user_data
        user_data = orjson.dumps(
            {
                "user_id": snapshot.user_id,
                "name": snapshot.name,
                "email": snapshot.email,
                "articles": list(snapshot.articles),
                "likes": list(snapshot.likes),
            }
        ).decode("utf-8")
        await self._run(
            self._execute,
            "INSERT INTO sessions (id, user_id, user_data, expires_at) VALUES (?, ?, ?, ?)",
            (session.id, session.user_id, user_data, _ts(session.expires_at)),
        )

    async def get(self, session_id: str) -> Session | None:
        row = await self._run(self._fetchone, "SELECT * FROM sessions WHERE id = ?", (session_id,))
        return _session_from_row(row) if row else None

    async def delete(self, session_id: str) -> bool:
        return await self._run(self._execute, "DELETE FROM sessions WHERE id = ?", (session_id,)) > 0

    async def delete_by_user(self, user_id: str) -> int:
        return await self._run(self._execute, "DELETE FROM sessions WHERE user_id = ?", (user_id,))

    async def delete_expired(self, now: datetime | None = None) -> int:
        cutoff = _ts(now or utc_now())
        return await self._run(self._execute, "DELETE FROM sessions WHERE expires_at <= ?", (cutoff,))


class MessageRepository(SqliteRepository):
    """Notification messages."""

    async def add(self, message: Message) -> str:
        await self._run(
            self._execute,
            "INSERT INTO messages (id, user_id, type, article_id, article_title, from_user_id, from_user_name,"
            " comment_id, comment_content, created_at, is_read) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                message.id,
                message.user_id,
                message.type,
                message.article_id,
                message.article_title,
                message.from_user_id,
                message.from_user_name,
                message.comment_id,
                message.comment_content,
                _ts(message.created_at),
                int(message.is_read),
            ),
        )
        return message.id

    async def list_by_user(self, user_id: str, *, limit: int = 20, skip: int = 0) -> list[Message]:
        rows = await self._run(
            self._fetchall,
            "SELECT * FROM messages WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (user_id, limit, skip),
        )
        return [_message_from_row(row) for row in rows]

    async def mark_read(self, message_id: str) -> bool:
        return await self._run(self._execute, "UPDATE messages SET is_read = 1 WHERE id = ?", (message_id,)) > 0

    async def mark_all_read(self, user_id: str) -> int:
        return await self._run(
            self._execute, "UPDATE messages SET is_read = 1 WHERE user_id = ? AND is_read = 0", (user_id,)
        )

    async def delete_read(self, user_id: str) -> int:
        return await self._run(self._execute, "DELETE FROM messages WHERE user_id = ? AND is_read = 1", (user_id,))


class AdminRepository(SqliteRepository):
    """Admin grants. ``user_id`` is unique."""

    async def add(self, admin: Admin) -> None:
        """Insert a grant. Raises ``sqlite3.IntegrityError`` if the user already has one."""
        await self._run(
            self._execute,
            "INSERT INTO admins (id, user_id, priority, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (admin.id, admin.user_id, admin.priority, _ts(admin.created_at), _ts(admin.updated_at)),
        )

    async def get_by_user(self, user_id: str) -> Admin | None:
        row = await self._run(self._fetchone, "SELECT * FROM admins WHERE user_id = ?", (user_id,))
        return _admin_from_row(row) if row else None

    async def delete_by_user(self, user_id: str) -> bool:
        return await self._run(self._execute, "DELETE FROM admins WHERE user_id = ?", (user_id,)) > 0

    async def list(self) -> list[Admin]:
        rows = await self._run(self._fetchall, "SELECT * FROM admins ORDER BY priority ASC, created_at ASC")
        return [_admin_from_row(row) for row in rows]
