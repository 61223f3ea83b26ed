from importlib.metadata import version

from .base.driver import BaseDriver, DriverCapabilities
from .connection import Connection, ConnectionStatus
from .driver.mysql import MysqlDriver
from .driver.postgres import PostgresDriver
from .driver.sqlite import SQLiteDriver
from .driver_manager import DriverManager
from .exception import (
    ConnectionException,
    ConstraintViolationException,
    DriverException,
    ErrorKind,
    NestorError,
    UniqueConstraintViolationException,
)

__version__ = version("nestor")

__all__ = (
    "BaseDriver",
    "Connection",
    "ConnectionException",
    "ConnectionStatus",
    "ConstraintViolationException",
    "DriverCapabilities",
    "DriverException",
    "DriverManager",
    "ErrorKind",
    "MysqlDriver",
    "NestorError",
    "PostgresDriver",
    "SQLiteDriver",
    "UniqueConstraintViolationException",
)
