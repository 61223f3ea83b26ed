from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from nestor.base.driver import BaseDriver

logger = logging.getLogger(__name__)

Closer = Callable[[Any], Awaitable[None]]


class DriverRegistry:
    """Lookup of driver classes by DSN scheme"""

    _singleton = None
    _drivers: Dict[str, Type[BaseDriver]]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    def add(cls, scheme: str, driver_class: Type[BaseDriver]) -> None:
        instance = cls()
        instance._drivers[scheme] = driver_class

    @classmethod
    def get(cls, scheme: str) -> Optional[Type[BaseDriver]]:
        instance = cls()
        found = instance._drivers.get(scheme)
        if found:
            return found
        for driver_class in BaseDriver.registered_drivers:
            if scheme == driver_class.scheme or scheme in driver_class.aliases:
                return driver_class
        return None

    @classmethod
    def reset(cls):
        cls._singleton = super().__new__(cls)
        cls._singleton._drivers = {}


class PoolRegistry:
    """
    Registry of process-wide pools backing persistent sessions.
    Drivers constructed with ``persistent=True`` for the same DSN lease
    their native session from the same pool.
    """

    _singleton = None
    _pools: Dict[str, Tuple[Any, Closer]]

    def __new__(cls, *args, **kwargs):
        if cls._singleton is None:
            cls.reset()
        return cls._singleton

    @classmethod
    async def get_or_open(
        cls,
        dsn: str,
        opener: Callable[[], Awaitable[Any]],
        closer: Closer,
    ) -> Any:
        """
        Get existing pool or open a new one for DSN.

        Args:
            dsn: Database connection string
            opener: Coroutine function returning an opened pool
            closer: Coroutine function used to shut the pool down

        Returns:
            Shared pool instance for the DSN
        """
        instance = cls()
        if dsn not in instance._pools:
            pool = await opener()
            instance._pools[dsn] = (pool, closer)
            logger.debug("Opened persistent pool for %s", dsn)
        return instance._pools[dsn][0]

    @classmethod
    def get(cls, dsn: str) -> Optional[Any]:
        """Get pool for DSN if it exists"""
        entry = cls()._pools.get(dsn)
        return entry[0] if entry else None

    @classmethod
    async def close_all(cls) -> None:
        """Shut down every persistent pool"""
        instance = cls()
        pools, instance._pools = instance._pools, {}
        for dsn, (pool, closer) in pools.items():
            await closer(pool)
            logger.debug("Closed persistent pool for %s", dsn)

    @classmethod
    def reset(cls):
        """Reset the registry (useful for testing)"""
        cls._singleton = super().__new__(cls)
        cls._singleton._pools = {}
