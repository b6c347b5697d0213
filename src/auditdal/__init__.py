from importlib.metadata import version

from .config import ConnectionConfig, DatabaseConfig, RetryPolicy
from .connections import ConnectionRegistry
from .database import Database
from .exception import (
    ConfigurationError,
    DALError,
    DatabaseError,
    SchemaError,
    TransactionError,
)
from .interface import Connection, PostgresPool, SQLitePool
from .registry import InterfaceRegistry
from .transaction import TransactionCoordinator, TransactionOutcome

__version__ = version("auditdal")

__all__ = (
    "ConfigurationError",
    "Connection",
    "ConnectionConfig",
    "ConnectionRegistry",
    "DALError",
    "Database",
    "DatabaseConfig",
    "DatabaseError",
    "InterfaceRegistry",
    "PostgresPool",
    "RetryPolicy",
    "SQLitePool",
    "SchemaError",
    "TransactionCoordinator",
    "TransactionError",
    "TransactionOutcome",
)
