from __future__ import annotations

from inspect import isawaitable
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
    from asyncmy import connect, create_pool
    from asyncmy.errors import IntegrityError

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False
    IntegrityError = type("IntegrityError", (Exception,), {})  # type: ignore

DUPLICATE_ENTRY = 1062


class MysqlDriver(BaseDriver):
    """Driver for a MySQL database"""

    scheme = "mysql"

    BEGIN_SQL = "START TRANSACTION"

    def _setup_driver(self):
        if not MYSQL_ENABLED:
            raise NestorError(
                "MySQL driver not found. Try reinstalling nestor: "
                "pip install nestor[mysql]"
            )

    @property
    def _connect_kwargs(self):
        return dict(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            db=self.db,
            autocommit=True,
        )

    async def _open(self) -> Any:
        if self.persistent:
            pool = await PoolRegistry.get_or_open(
                self.full_dsn, self._open_pool, self._close_pool
            )
            return await pool.acquire()
        return await connect(**self._connect_kwargs)

    async def _close(self, session: Any) -> None:
        if self.persistent:
            pool = PoolRegistry.get(self.full_dsn)
            if pool is not None:
                released = pool.release(session)
                if isawaitable(released):
                    await released
                return
        session.close()

    async def _open_pool(self) -> Any:
        return await create_pool(**self._connect_kwargs)

    @staticmethod
    async def _close_pool(pool: Any) -> None:
        pool.close()
        await pool.wait_closed()

    async def _execute(self, session: Any, sql: str, params: Params) -> int:
        async with session.cursor() as cursor:
            return await cursor.execute(sql, params)

    async def _fetch_one(self, session: Any, sql: str, params: Params):
        async with session.cursor() as cursor:
            await cursor.execute(sql, params)
            row = await cursor.fetchone()
        return row[0] if row else None

    async def _server_version(self, session: Any) -> str:
        return session.get_server_info()

    def _convert_exception(
        self, error: Exception, sql: str
    ) -> DriverException:
        message = str(error)
        if isinstance(error, IntegrityError):
            if error.args and error.args[0] == DUPLICATE_ENTRY:
                return UniqueConstraintViolationException(message, error, sql)
            return ConstraintViolationException(message, error, sql)
        return DriverException(message, error, sql)
