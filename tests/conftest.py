from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from auditdal import ConnectionRegistry, Database, DatabaseConfig
from auditdal.interface import postgres
from auditdal.interface.base import BaseInterface, Connection
from auditdal.transaction import TransactionCoordinator


class DriverMock:
    """Stands in for a raw driver connection and records every statement"""

    def __init__(self):
        self.executed: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.rows: List[Dict[str, Any]] = [{"?column?": 1}]
        self.tables: Dict[str, List[str]] = {}

    def fail_on(self, sql: str, error: Optional[Exception] = None):
        self.failures[sql] = error or RuntimeError(f"{sql} failed")

    def run(self, sql: str):
        error = self.failures.get(sql)
        if error is not None:
            raise error
        self.executed.append(sql)


class RecordingConnection(Connection):
    raw: DriverMock

    def statement(self, sql, bindings=None):
        self.raw.run(sql)

    def select(self, sql, bindings=None):
        self.raw.run(sql)
        return self.raw.rows

    def has_table(self, table):
        self.raw.run(f"HAS TABLE {table}")
        return table in self.raw.tables

    def get_column_listing(self, table):
        self.raw.run(f"COLUMNS {table}")
        return self.raw.tables[table]

    def get_indexes(self, table):
        self.raw.run(f"INDEXES {table}")
        return [{"name": f"{table}_pkey", "unique": True, "columns": ["id"]}]


class RecordingPool(BaseInterface):
    scheme = "recording"
    connection_class = RecordingConnection

    def _setup_pool(self):
        # The first handle is handed out again whenever it is idle
        self.driver = DriverMock()
        self.idle = [self.driver]
        self.acquired = 0
        self.released = 0
        self.opened = False

    def open(self):
        self.opened = True

    def close(self):
        self.opened = False

    def _acquire(self, timeout=None):
        self.acquired += 1
        return self.idle.pop() if self.idle else DriverMock()

    def _release(self, raw):
        self.released += 1
        self.idle.append(raw)


@pytest.fixture
def config():
    return DatabaseConfig.from_mapping(
        {
            "default": "primary",
            "connections": {
                "primary": {
                    "driver": "recording",
                    "host": "db-1.internal",
                    "port": "5432",
                    "database": "audits",
                    "username": "app",
                    "password": "secret",
                },
                "secondary": {
                    "driver": "recording",
                    "host": "db-2.internal",
                    "port": "5433",
                    "database": "audits_replica",
                    "username": "app",
                },
            },
            "transactions": {"retry_attempts": 3, "retry_delay": 100},
        }
    )


@pytest.fixture
def registry(config):
    registry = ConnectionRegistry(config)
    yield registry
    registry.close()


@pytest.fixture
def driver(registry) -> DriverMock:
    return registry.get_pool().driver


@pytest.fixture
def coordinator(registry):
    return TransactionCoordinator(registry)


@pytest.fixture
def sqlite_db():
    db = Database(
        {
            "default": "main",
            "connections": {
                "main": {"driver": "sqlite", "database": ":memory:"}
            },
        }
    )
    db.connection().statement(
        "CREATE TABLE assets (id INTEGER PRIMARY KEY, tag TEXT NOT NULL)"
    )
    db.connection().statement(
        "CREATE UNIQUE INDEX assets_tag_unique ON assets (tag)"
    )
    yield db
    db.close()


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(
        "auditdal.transaction.retry.time.sleep", delays.append
    )
    return delays


@pytest.fixture
def mock_postgres_pool(monkeypatch):
    pool = MagicMock()
    mock = MagicMock(return_value=pool)
    monkeypatch.setattr(postgres, "ConnectionPool", mock)
    return mock


@pytest.fixture
def recording_pool():
    return RecordingPool
