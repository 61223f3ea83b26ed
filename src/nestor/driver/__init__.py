from .mysql import MysqlDriver
from .postgres import PostgresDriver
from .sqlite import SQLiteDriver

__all__ = ("MysqlDriver", "PostgresDriver", "SQLiteDriver")
