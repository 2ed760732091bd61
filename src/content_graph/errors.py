"""Result and error types shared by every core operation.

Core operations return a ``DbResult`` instead of raising. The only exception
that crosses module boundaries on purpose is ``TransactionAbort``, which a
unit-of-work body raises to force a rollback; the transaction coordinator
catches it and turns it back into a ``DbResult``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict


T = TypeVar("T")


class ErrorCode(StrEnum):
    """Machine-readable failure classes."""

    INVALID_ID_FORMAT = "INVALID_ID_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    ADMIN_EXISTS = "ADMIN_EXISTS"
    TRANSACTION_ERROR = "TRANSACTION_ERROR"
    DB_ERROR = "DB_ERROR"


class DbError(BaseModel):
    """Structured error: ``code`` for programs, ``message`` for logs.

    ``cause`` keeps the tag of the abort that collapsed into a coarser code,
    e.g. ``TRANSACTION_ERROR`` caused by ``NOT_FOUND``.
    """

    model_config = ConfigDict(frozen=True)

    code: ErrorCode
    message: str
    cause: ErrorCode | None = None


class DbResult(BaseModel, Generic[T]):
    """Either ``data`` or ``error`` is meaningful, never both."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    data: T | None = None
    error: DbError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None) -> DbResult[T]:
        return cls(data=data, error=None)

    @classmethod
    def fail(cls, code: ErrorCode, message: str, *, cause: ErrorCode | None = None) -> DbResult[T]:
        return cls(data=None, error=DbError(code=code, message=message, cause=cause))


class TransactionAbort(Exception):
    """Raised inside a unit of work to abort it.

    ``code`` tags the precondition that failed so the coordinator can report
    it instead of a bare ``TRANSACTION_ERROR``.
    """

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        self.code = code


class StoreNotConnectedError(RuntimeError):
    """The store was used before ``connect()`` or after ``close()``."""
