from __future__ import annotations

from typing import Any

from nestor.base.driver import BaseDriver, Params
from nestor.exception import (
    ConstraintViolationException,
    DriverException,
    NestorError,
    UniqueConstraintViolationException,
)
from nestor.registry import PoolRegistry

try:
    from psycopg import AsyncConnection, IntegrityError
    from psycopg.errors import UniqueViolation
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False
    AsyncConnection = type("Connection", (), {})  # type: ignore
    AsyncConnectionPool = type("Connection", (), {})  # type: ignore
    IntegrityError = type("IntegrityError", (Exception,), {})  # type: ignore
    UniqueViolation = type("UniqueViolation", (IntegrityError,), {})  # type: ignore


def format_server_version(number: int) -> str:
    """Turn libpq's numeric version (160002, 90624) into dotted form"""
    major, rest = divmod(number, 10000)
    if major >= 10:
        return f"{major}.{rest}"
    minor, patch = divmod(rest, 100)
    return f"{major}.{minor}.{patch}"


class PostgresDriver(BaseDriver):
    """Driver for a Postgres database"""

    scheme = "postgres"
    aliases = ("postgresql",)

    BEGIN_SQL = "START TRANSACTION"

    def _setup_driver(self):
        if not POSTGRES_ENABLED:
            raise NestorError(
                "Postgres driver not found. Try reinstalling nestor: "
                "pip install nestor[postgres]"
            )

    async def _open(self) -> Any:
        if self.persistent:
            pool = await PoolRegistry.get_or_open(
                self.full_dsn, self._open_pool, self._close_pool
            )
            return await pool.getconn()
        # Transactions are driven by explicit statements only
        return await AsyncConnection.connect(self.full_dsn, autocommit=True)

    async def _close(self, session: Any) -> None:
        if self.persistent:
            pool = PoolRegistry.get(self.full_dsn)
            if pool is not None:
                await pool.putconn(session)
                return
        await session.close()

    async def _open_pool(self) -> Any:
        pool = AsyncConnectionPool(
            self.full_dsn, open=False, kwargs={"autocommit": True}
        )
        await pool.open()
        return pool

    @staticmethod
    async def _close_pool(pool: Any) -> None:
        await pool.close()

    async def _execute(self, session: Any, sql: str, params: Params) -> int:
        cursor = await session.execute(sql, params)
        return cursor.rowcount

    async def _fetch_one(self, session: Any, sql: str, params: Params):
        cursor = await session.execute(sql, params)
        row = await cursor.fetchone()
        return row[0] if row else None

    async def _server_version(self, session: Any) -> str:
        return format_server_version(session.info.server_version)

    def _convert_exception(
        self, error: Exception, sql: str
    ) -> DriverException:
        message = str(error)
        if isinstance(error, UniqueViolation):
            return UniqueConstraintViolationException(message, error, sql)
        if isinstance(error, IntegrityError):
            return ConstraintViolationException(message, error, sql)
        return DriverException(message, error, sql)
