"""Login sessions.

A session carries a snapshot of the user taken at login and is never
refreshed from the live user: the snapshot is at most ``lifetime`` old.
Expired sessions and sessions whose user has disappeared are deleted the
first time they are looked up; ``purge_expired_sessions`` sweeps the rest.
"""

from __future__ import annotations

from datetime import timedelta
import logging
import sqlite3

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import Session, is_valid_id, utc_now
from content_graph.errors import DbResult, ErrorCode
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import open_repositories


logger = logging.getLogger(__name__)

DEFAULT_LIFETIME = timedelta(days=7)


@instrumented("create_session")
async def create_session(
    store: SqliteStore, user_id: str, *, lifetime: timedelta = DEFAULT_LIFETIME
) -> DbResult[Session]:
    """Start a session for an existing user."""
    if not is_valid_id(user_id):
        return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"Invalid id format for user ID: {user_id}")
    try:
        async with open_repositories(store) as repos:
            user = await repos.users.get(user_id)
            if user is None:
                return DbResult.fail(ErrorCode.NOT_FOUND, f"User with ID '{user_id}' not found.")
            session = Session.start(user, lifetime)
            await repos.sessions.add(session)
    except sqlite3.Error as exc:
        logger.exception("Error creating session for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    logger.info("Session created for user %s, expires %s", user_id, session.expires_at.isoformat())
    return DbResult.success(session)


@instrumented("find_session")
async def find_session(store: SqliteStore, session_id: str) -> DbResult[Session | None]:
    """Resolve a session id. Missing, expired and orphaned sessions are ``data=None``."""
    if not session_id:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "Session ID is required.")
    try:
        async with open_repositories(store) as repos:
            session = await repos.sessions.get(session_id)
            if session is None:
                return DbResult.success(None)
            if session.is_expired():
                logger.info("Session expired, deleting")
                await repos.sessions.delete(session_id)
                return DbResult.success(None)
            if await repos.users.get(session.user_id) is None:
                logger.warning("Session references missing user %s, deleting", session.user_id)
                await repos.sessions.delete(session_id)
                return DbResult.success(None)
    except sqlite3.Error as exc:
        logger.exception("Error finding session")
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    return DbResult.success(session)


@instrumented("delete_session")
async def delete_session(store: SqliteStore, session_id: str) -> DbResult[bool]:
    """Log out. ``data`` tells whether a session was actually removed."""
    if not session_id:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "Session ID is required.")
    try:
        async with open_repositories(store) as repos:
            deleted = await repos.sessions.delete(session_id)
    except sqlite3.Error as exc:
        logger.exception("Error deleting session")
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    return DbResult.success(deleted)


@instrumented("purge_expired_sessions")
async def purge_expired_sessions(store: SqliteStore) -> DbResult[int]:
    """Delete every session past its expiry. Returns how many went."""
    try:
        async with open_repositories(store) as repos:
            purged = await repos.sessions.delete_expired(utc_now())
    except sqlite3.Error as exc:
        logger.exception("Error purging expired sessions")
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    if purged:
        logger.info("Purged %d expired sessions", purged)
    return DbResult.success(purged)
