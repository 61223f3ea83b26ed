from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Discriminant for failures raised by a connection"""

    NO_ACTIVE_TRANSACTION = "no_active_transaction"
    COMMIT_FAILED_ROLLBACK_ONLY = "commit_failed_rollback_only"
    TRANSACTION_ACTIVE = "transaction_active"
    SAVEPOINTS_NOT_SUPPORTED = "savepoints_not_supported"
    DRIVER_ERROR = "driver_error"


class NestorError(Exception):
    kind: Optional[ErrorKind] = None

    def __init__(
        self, message: str = "", kind: Optional[ErrorKind] = None
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class ConnectionException(NestorError):
    """Transaction state errors and failed transaction statements"""

    @classmethod
    def no_active_transaction(cls) -> ConnectionException:
        return cls(
            "There is no active transaction.",
            ErrorKind.NO_ACTIVE_TRANSACTION,
        )

    @classmethod
    def commit_failed_rollback_only(cls) -> ConnectionException:
        return cls(
            "Transaction commit failed because the transaction has been "
            "marked for rollback only.",
            ErrorKind.COMMIT_FAILED_ROLLBACK_ONLY,
        )

    @classmethod
    def may_not_alter_nesting_in_transaction(cls) -> ConnectionException:
        return cls(
            "May not alter the nested transaction with savepoints behavior "
            "while a transaction is open.",
            ErrorKind.TRANSACTION_ACTIVE,
        )

    @classmethod
    def savepoints_not_supported(cls) -> ConnectionException:
        return cls(
            "Savepoints are not supported by this driver.",
            ErrorKind.SAVEPOINTS_NOT_SUPPORTED,
        )

    @classmethod
    def driver_error(
        cls, error: BaseException, sql: str
    ) -> ConnectionException:
        return cls(
            f"Failed to execute '{sql}': {error}", ErrorKind.DRIVER_ERROR
        )


class DriverException(NestorError):
    """Raised when the database driver reports a failure

    The native exception is kept as ``__cause__`` and on ``original``.
    """

    kind = ErrorKind.DRIVER_ERROR

    def __init__(
        self,
        message: str = "",
        original: Optional[BaseException] = None,
        sql: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.original = original
        self.sql = sql


class ConstraintViolationException(DriverException):
    ...


class UniqueConstraintViolationException(ConstraintViolationException):
    ...
