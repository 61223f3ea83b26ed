from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from nestor import Connection
from nestor.base.driver import BaseDriver, DriverCapabilities, Params
from nestor.exception import (
    DriverException,
    UniqueConstraintViolationException,
)
from nestor.registry import DriverRegistry, PoolRegistry


class UniqueError(Exception):
    """Stands in for a native unique constraint error"""


class DummyDriver(BaseDriver):
    scheme = "dummy"

    def __init__(
        self,
        supports_savepoints: bool = True,
        supports_release_savepoints: bool = True,
    ):
        self.capabilities = DriverCapabilities(
            supports_savepoints=supports_savepoints,
            supports_release_savepoints=supports_release_savepoints,
        )
        self.executed: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.opened = 0
        self.closed = 0
        super().__init__(dsn="dummy://user@localhost:1234/db")

    def _setup_driver(self): ...

    def fail_on(self, sql: str, error: Optional[Exception] = None) -> None:
        self.failures[sql] = error or Exception(f"{sql} failed")

    async def _open(self) -> Any:
        self.opened += 1
        return MagicMock(name=f"session{self.opened}")

    async def _close(self, session: Any) -> None:
        self.closed += 1

    async def _execute(self, session: Any, sql: str, params: Params) -> int:
        self.executed.append(sql)
        if sql in self.failures:
            raise self.failures[sql]
        return 1

    async def _fetch_one(self, session: Any, sql: str, params: Params):
        self.executed.append(sql)
        return None

    async def _server_version(self, session: Any) -> str:
        return "1.0.0"

    def _convert_exception(
        self, error: Exception, sql: str
    ) -> DriverException:
        if isinstance(error, UniqueError):
            return UniqueConstraintViolationException(str(error), error, sql)
        return DriverException(str(error), error, sql)


@pytest.fixture(autouse=True)
def reset_registry():
    DriverRegistry().reset()
    PoolRegistry().reset()


@pytest.fixture
def driver():
    return DummyDriver()


@pytest.fixture
def flat_driver():
    return DummyDriver(supports_savepoints=False)


@pytest.fixture
def connection(driver):
    return Connection(driver)


@pytest.fixture
def savepoint_connection(driver):
    return Connection(driver, nest_transactions_with_savepoints=True)


@pytest.fixture
def flat_connection(flat_driver):
    return Connection(flat_driver)


@pytest.fixture
def duplicate_insert(driver):
    sql = "INSERT INTO connection_test (id) VALUES (1)"
    driver.fail_on(sql, UniqueError("duplicate key id=1"))
    return sql
