from __future__ import annotations

import logging

from nestor.base.driver import BaseDriver
from nestor.exception import ConnectionException, DriverException

from .savepoint import SavepointEmulator
from .state import TransactionState

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Emulates nested transactions on top of a single native transaction.

    Only the outermost level talks to the native transaction. Inner levels
    either map to savepoints (savepoint mode) or are absorbed into the outer
    transaction (flat mode). In flat mode an inner rollback cannot undo
    anything on its own, so it marks the whole transaction rollback-only.
    """

    def __init__(self, driver: BaseDriver):
        self.driver = driver
        self.savepoints = SavepointEmulator(driver)
        self._state = TransactionState()

    @property
    def state(self) -> TransactionState:
        return self._state

    def get_transaction_nesting_level(self) -> int:
        return self._state.nesting_level

    def is_rollback_only(self) -> bool:
        return self._state.rollback_only

    def get_nest_transactions_with_savepoints(self) -> bool:
        return self._state.savepoint_mode

    def set_nest_transactions_with_savepoints(self, enable: bool) -> None:
        """Choose between savepoint and flat nesting

        Raises:
            ConnectionException: If a transaction is open, or if savepoints
                are requested from a driver without them
        """
        if self._state.nesting_level > 0:
            raise ConnectionException.may_not_alter_nesting_in_transaction()

        if enable and not self.driver.supports_savepoints():
            raise ConnectionException.savepoints_not_supported()

        self._state.savepoint_mode = bool(enable)
        logger.debug(
            "Nesting transactions with %s",
            "savepoints" if enable else "a flat transaction",
        )

    def set_rollback_only(self) -> None:
        if self._state.nesting_level == 0:
            raise ConnectionException.no_active_transaction()
        self._state.rollback_only = True

    async def begin_transaction(self) -> None:
        level = self._state.nesting_level

        if level == 0:
            await self._native(self.driver.BEGIN_SQL)
            logger.debug("Started native transaction")
        elif self._state.savepoint_mode:
            await self.savepoints.push(level + 1)
        else:
            logger.debug(
                "Nested transaction at level %d absorbed into outer "
                "transaction",
                level + 1,
            )

        self._state.nesting_level = level + 1

    async def commit(self) -> None:
        level = self._state.nesting_level

        if level == 0:
            raise ConnectionException.no_active_transaction()

        if level == 1:
            if self._state.rollback_only:
                raise ConnectionException.commit_failed_rollback_only()
            try:
                await self._native(self.driver.COMMIT_SQL)
            finally:
                self.reset()
            logger.info("Committed native transaction")
            return

        if self._state.savepoint_mode:
            name = self.savepoints.savepoint_name(level)
            await self.savepoints.release_savepoint(name)
            self.savepoints.pop(level)

        self._state.nesting_level = level - 1
        logger.debug("Committed nested transaction at level %d", level)

    async def roll_back(self) -> None:
        level = self._state.nesting_level

        if level == 0:
            raise ConnectionException.no_active_transaction()

        if level == 1:
            try:
                await self._native(self.driver.ROLLBACK_SQL)
            finally:
                self.reset()
            logger.info("Rolled back native transaction")
            return

        if not self._state.savepoint_mode:
            self._state.rollback_only = True
            self._state.nesting_level = level - 1
            logger.debug(
                "Rolled back nested transaction at level %d, outer "
                "transaction is now rollback-only",
                level,
            )
            return

        name = self.savepoints.savepoint_name(level)
        try:
            await self.savepoints.rollback_savepoint(name)
            await self.savepoints.release_savepoint(name)
        except ConnectionException:
            self._state.rollback_only = True
            raise
        else:
            self._state.rollback_only = False
        finally:
            self.savepoints.pop(level)
            self._state.nesting_level = level - 1

        logger.debug("Rolled back nested transaction at level %d", level)

    def reset(self) -> None:
        self._state.reset()
        self.savepoints.clear()

    async def _native(self, sql: str) -> None:
        try:
            await self.driver.execute_statement(sql)
        except DriverException as e:
            raise ConnectionException.driver_error(e, sql) from e
