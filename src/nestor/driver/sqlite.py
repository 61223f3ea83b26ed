from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional
from urllib.parse import urlparse

from nestor.base.driver import BaseDriver, Params
from nestor.exception import (
    ConstraintViolationException,
    DriverException,
    NestorError,
    UniqueConstraintViolationException,
)

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class SQLiteDriver(BaseDriver):
    """Driver for a SQLite database file

    The file is given either as `db_path` or as a DSN of the form
    ``sqlite:///relative/path`` or ``sqlite:////absolute/path``.
    """

    scheme = "sqlite"

    def __init__(
        self,
        db_path: Optional[str] = None,
        persistent: bool = False,
        dsn: Optional[str] = None,
    ):
        if db_path and dsn:
            raise NestorError("Conflict with DSN and DB path")
        self._db_path = (
            self._path_from_dsn(dsn) if dsn else db_path or MEMORY
        )
        super().__init__(persistent=persistent)
        self._params = {
            "dsn" if dsn else "db_path": dsn or db_path or MEMORY,
            "persistent": persistent,
        }

    @staticmethod
    def _path_from_dsn(dsn: str) -> str:
        parts = urlparse(dsn)
        if parts.netloc:
            raise NestorError(
                f"SQLite DSN must not name a host: {parts.netloc}"
            )
        # One slash separates the empty host from the path
        return parts.path[1:] or MEMORY

    def _setup_driver(self):
        if not AIOSQLITE_ENABLED:
            raise NestorError(
                "SQLite driver not found. Try reinstalling nestor: "
                "pip install nestor[sqlite]"
            )
        if self.persistent:
            logger.warning(
                "SQLite does not support persistent sessions, "
                "a new session is opened on every connect"
            )

    def _populate_connection_args(self): ...

    def _populate_dsn(self):
        self._dsn = f"{self.scheme}:///{self._db_path}"
        self._full_dsn = self._dsn

    @property
    def db_path(self) -> str:
        return self._db_path

    async def _open(self) -> Any:
        # Transactions are driven by explicit statements only
        return await aiosqlite.connect(self._db_path, isolation_level=None)

    async def _close(self, session: Any) -> None:
        await session.close()

    async def _execute(self, session: Any, sql: str, params: Params) -> int:
        cursor = await session.execute(sql, params or ())
        rowcount = cursor.rowcount
        await cursor.close()
        return rowcount

    async def _fetch_one(self, session: Any, sql: str, params: Params):
        cursor = await session.execute(sql, params or ())
        row = await cursor.fetchone()
        await cursor.close()
        return row[0] if row else None

    async def _server_version(self, session: Any) -> str:
        return await self._fetch_one(session, "SELECT sqlite_version()", None)

    def _convert_exception(
        self, error: Exception, sql: str
    ) -> DriverException:
        message = str(error)
        if isinstance(error, sqlite3.IntegrityError):
            if "UNIQUE" in message or "PRIMARY KEY" in message:
                return UniqueConstraintViolationException(message, error, sql)
            return ConstraintViolationException(message, error, sql)
        return DriverException(message, error, sql)
