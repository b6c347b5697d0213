from .base import BaseInterface, Connection
from .postgres import PostgresConnection, PostgresPool
from .sqlite import SQLiteConnection, SQLitePool

__all__ = (
    "BaseInterface",
    "Connection",
    "PostgresConnection",
    "PostgresPool",
    "SQLiteConnection",
    "SQLitePool",
)
