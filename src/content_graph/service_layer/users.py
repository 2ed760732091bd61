"""User use cases. Password hashing happens upstream; only the hash arrives here."""

from __future__ import annotations

import logging
import re
import sqlite3

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import User, is_valid_id
from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork, open_repositories


logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email))


@instrumented("create_user")
async def create_user(store: SqliteStore, *, name: str, email: str, password_hash: str) -> DbResult[str]:
    """Register a user. The unique email index is the arbiter of ``EMAIL_EXISTS``."""
    if not name or not name.strip():
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "Name is required.")
    normalized = normalize_email(email or "")
    if not is_valid_email(normalized):
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Invalid email format for '{normalized}'.")

    user = User.create(name, normalized, password_hash)
    try:
        async with open_repositories(store) as repos:
            await repos.users.add(user)
    except sqlite3.IntegrityError:
        message = f"Create user failed: Email '{normalized}' already exists."
        logger.warning(message)
        return DbResult.fail(ErrorCode.EMAIL_EXISTS, message)
    except sqlite3.Error as exc:
        logger.exception("Error during create_user for email %s", normalized)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    logger.info("Created user %s", user.id)
    return DbResult.success(user.id)


@instrumented("find_user_by_id")
async def find_user_by_id(store: SqliteStore, user_id: str) -> DbResult[User | None]:
    """Look a user up by id. A missing user is ``data=None``, not an error."""
    if not is_valid_id(user_id):
        return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"Invalid id format for user ID: {user_id}")
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.users.get(user_id))
    except sqlite3.Error as exc:
        logger.exception("Error finding user by ID %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))


@instrumented("find_user_by_email")
async def find_user_by_email(store: SqliteStore, email: str) -> DbResult[User | None]:
    """Look a user up by email, case-insensitively."""
    normalized = normalize_email(email or "")
    if not is_valid_email(normalized):
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Invalid email format for '{normalized}'.")
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.users.get_by_email(normalized))
    except sqlite3.Error as exc:
        logger.exception("Error finding user by email %s", normalized)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))


@instrumented("update_user_profile")
async def update_user_profile(
    coordinator: TransactionCoordinator,
    user_id: str,
    *,
    name: str | None = None,
    email: str | None = None,
    signature: str | None = None,
) -> DbResult[User]:
    """Update display name, email or signature.

    Sessions keep their login-time snapshot; the change shows up there only
    after the next login.
    """
    if not is_valid_id(user_id):
        return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"Invalid id format for user ID: {user_id}")
    if name is None and email is None and signature is None:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "No update data provided.")

    changes: dict[str, str] = {}
    if name is not None:
        if not name.strip():
            return DbResult.fail(ErrorCode.VALIDATION_ERROR, "Name cannot be blank.")
        changes["name"] = name.strip()
    if email is not None:
        normalized = normalize_email(email)
        if not is_valid_email(normalized):
            return DbResult.fail(ErrorCode.VALIDATION_ERROR, f"Invalid email format: {email}")
        changes["email"] = normalized
    if signature is not None:
        changes["signature"] = signature

    async def work(uow: AbstractUnitOfWork) -> User:
        if "email" in changes and await uow.users.email_taken(changes["email"], exclude_id=user_id):
            raise TransactionAbort(
                f"Email '{changes['email']}' is already in use by another user.", ErrorCode.EMAIL_EXISTS
            )
        if not await uow.users.update_fields(user_id, changes):
            raise TransactionAbort(f"User with ID '{user_id}' not found.", ErrorCode.NOT_FOUND)
        user = await uow.users.get(user_id)
        if user is None:
            raise TransactionAbort(f"User with ID '{user_id}' vanished during update")
        return user

    return await coordinator.run(
        "update_user_profile", work, surface_codes={ErrorCode.EMAIL_EXISTS, ErrorCode.NOT_FOUND}
    )


@instrumented("delete_user")
async def delete_user(coordinator: TransactionCoordinator, user_id: str) -> DbResult[None]:
    """Delete a user together with their sessions and admin grant.

    The user's likes are withdrawn so every article counter still equals its
    number of likers. Articles and comments written by the user stay, carrying
    the denormalized author name.
    """
    if not is_valid_id(user_id):
        return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"Invalid id format for user ID: {user_id}")

    async def work(uow: AbstractUnitOfWork) -> None:
        user = await uow.users.get(user_id)
        if user is None or not await uow.users.delete(user_id):
            raise TransactionAbort(f"User with ID '{user_id}' not found for deletion.", ErrorCode.NOT_FOUND)
        for article_id in set(user.likes):
            await uow.articles.adjust_likes(article_id, -1)
        await uow.sessions.delete_by_user(user_id)
        await uow.admins.delete_by_user(user_id)

    return await coordinator.run("delete_user", work, surface_codes={ErrorCode.NOT_FOUND})
