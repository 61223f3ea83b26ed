"""
Savepoint handling for transactions nested inside one native transaction.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from nestor.base.driver import BaseDriver
from nestor.exception import ConnectionException, DriverException

logger = logging.getLogger(__name__)

SAVEPOINT_PREFIX = "NESTOR_SAVEPOINT_"


class SavepointEmulator:
    """
    Issues savepoint statements through a driver and keeps the names of the
    savepoints opened for nesting, indexed by depth.

    Every operation checks the driver capability before any I/O, so an
    unsupported savepoint fails the same way inside or outside a transaction.
    """

    def __init__(self, driver: BaseDriver):
        self.driver = driver
        self._stack: List[str] = []

    @staticmethod
    def savepoint_name(depth: int) -> str:
        return f"{SAVEPOINT_PREFIX}{depth}"

    @property
    def active(self) -> List[str]:
        return list(self._stack)

    @property
    def current(self) -> Optional[str]:
        return self._stack[-1] if self._stack else None

    async def push(self, depth: int) -> str:
        """Create the savepoint guarding nesting level ``depth``"""
        name = self.savepoint_name(depth)
        await self.create_savepoint(name)
        self._stack.append(name)
        return name

    def pop(self, depth: int) -> str:
        name = self.savepoint_name(depth)
        if self._stack and self._stack[-1] == name:
            self._stack.pop()
        return name

    def clear(self) -> None:
        self._stack.clear()

    async def create_savepoint(self, name: str) -> None:
        """Create a savepoint in the current native transaction"""
        self._check_support()
        logger.debug(f"Creating savepoint {name}")
        await self._run(self.driver.CREATE_SAVEPOINT_SQL.format(name=name))

    async def release_savepoint(self, name: str) -> None:
        """Release a savepoint, keeping the work done since it was created"""
        self._check_support()
        if not self.driver.supports_release_savepoints():
            logger.debug(
                f"Not releasing savepoint {name}, "
                f"{self.driver.__class__.__name__} cannot release savepoints"
            )
            return
        logger.debug(f"Releasing savepoint {name}")
        await self._run(self.driver.RELEASE_SAVEPOINT_SQL.format(name=name))

    async def rollback_savepoint(self, name: str) -> None:
        """Undo the work done since the savepoint was created"""
        self._check_support()
        logger.debug(f"Rolling back to savepoint {name}")
        await self._run(self.driver.ROLLBACK_SAVEPOINT_SQL.format(name=name))

    def _check_support(self) -> None:
        if not self.driver.supports_savepoints():
            raise ConnectionException.savepoints_not_supported()

    async def _run(self, sql: str) -> None:
        try:
            await self.driver.execute_statement(sql)
        except DriverException as e:
            logger.error(f"Savepoint statement '{sql}' failed: {e}")
            raise ConnectionException.driver_error(e, sql) from e
