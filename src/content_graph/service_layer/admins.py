"""Admin grants. Priority 0 is the super admin; lower numbers outrank higher ones."""

from __future__ import annotations

import logging
import sqlite3

from content_graph.adapters.sqlite_store import SqliteStore
from content_graph.domain.model import Admin, is_valid_id, new_id, utc_now
from content_graph.errors import DbResult, ErrorCode, TransactionAbort
from content_graph.service_layer.coordinator import TransactionCoordinator
from content_graph.service_layer.instrumentation import instrumented
from content_graph.service_layer.unit_of_work import AbstractUnitOfWork, open_repositories


logger = logging.getLogger(__name__)

SUPER_ADMIN_PRIORITY = 0


def _invalid_user(user_id: str) -> DbResult:
    return DbResult.fail(ErrorCode.INVALID_ID_FORMAT, f"Invalid id format for user ID: {user_id}")


@instrumented("grant_admin")
async def grant_admin(coordinator: TransactionCoordinator, user_id: str, *, priority: int = 1) -> DbResult[Admin]:
    """Make an existing user an admin."""
    if not is_valid_id(user_id):
        return _invalid_user(user_id)
    if priority < 0:
        return DbResult.fail(ErrorCode.VALIDATION_ERROR, "priority must be >= 0")

    async def work(uow: AbstractUnitOfWork) -> Admin:
        if await uow.users.get(user_id) is None:
            raise TransactionAbort("User not found", ErrorCode.NOT_FOUND)
        if await uow.admins.get_by_user(user_id) is not None:
            raise TransactionAbort("User is already an admin", ErrorCode.ADMIN_EXISTS)
        now = utc_now()
        admin = Admin(id=new_id(), user_id=user_id, priority=priority, created_at=now, updated_at=now)
        await uow.admins.add(admin)
        return admin

    result = await coordinator.run(
        "grant_admin", work, surface_codes={ErrorCode.NOT_FOUND, ErrorCode.ADMIN_EXISTS}
    )
    if result.ok:
        logger.info("Granted admin (priority=%d) to user %s", priority, user_id)
    return result


@instrumented("revoke_admin")
async def revoke_admin(store: SqliteStore, user_id: str) -> DbResult[None]:
    if not is_valid_id(user_id):
        return _invalid_user(user_id)
    try:
        async with open_repositories(store) as repos:
            removed = await repos.admins.delete_by_user(user_id)
    except sqlite3.Error as exc:
        logger.exception("Failed to revoke admin for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
    if not removed:
        return DbResult.fail(ErrorCode.NOT_FOUND, f"User {user_id} is not an admin")
    logger.info("Revoked admin from user %s", user_id)
    return DbResult.success(None)


async def _get_grant(store: SqliteStore, user_id: str) -> DbResult[Admin | None]:
    if not is_valid_id(user_id):
        return _invalid_user(user_id)
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.admins.get_by_user(user_id))
    except sqlite3.Error as exc:
        logger.exception("Failed to look up admin grant for user %s", user_id)
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))


@instrumented("is_admin")
async def is_admin(store: SqliteStore, user_id: str) -> DbResult[bool]:
    grant = await _get_grant(store, user_id)
    if not grant.ok:
        return DbResult.fail(grant.error.code, grant.error.message)
    return DbResult.success(grant.data is not None)


@instrumented("is_super_admin")
async def is_super_admin(store: SqliteStore, user_id: str) -> DbResult[bool]:
    grant = await _get_grant(store, user_id)
    if not grant.ok:
        return DbResult.fail(grant.error.code, grant.error.message)
    return DbResult.success(grant.data is not None and grant.data.priority == SUPER_ADMIN_PRIORITY)


@instrumented("list_admins")
async def list_admins(store: SqliteStore) -> DbResult[list[Admin]]:
    """Every grant, highest rank first."""
    try:
        async with open_repositories(store) as repos:
            return DbResult.success(await repos.admins.list())
    except sqlite3.Error as exc:
        logger.exception("Failed to list admins")
        return DbResult.fail(ErrorCode.DB_ERROR, str(exc))
