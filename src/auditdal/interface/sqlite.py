from __future__ import annotations

import sqlite3
import threading
from typing import Any, Dict, List, Optional

from auditdal.interface.base import BaseInterface, Bindings, Connection


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteConnection(Connection):
    raw: sqlite3.Connection

    def statement(self, sql: str, bindings: Bindings = None) -> None:
        self.raw.execute(sql, tuple(bindings or ()))

    def select(
        self, sql: str, bindings: Bindings = None
    ) -> List[Dict[str, Any]]:
        cursor = self.raw.execute(sql, tuple(bindings or ()))
        return [dict(row) for row in cursor.fetchall()]

    def has_table(self, table: str) -> bool:
        rows = self.select(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name = ?",
            (table,),
        )
        return bool(rows)

    def get_column_listing(self, table: str) -> List[str]:
        rows = self.select(f"PRAGMA table_info({_quote(table)})")
        return [row["name"] for row in rows]

    def get_indexes(self, table: str) -> List[Dict[str, Any]]:
        indexes = []
        for row in self.select(f"PRAGMA index_list({_quote(table)})"):
            columns = self.select(f"PRAGMA index_info({_quote(row['name'])})")
            indexes.append(
                {
                    "name": row["name"],
                    "unique": bool(row["unique"]),
                    "columns": [column["name"] for column in columns],
                }
            )
        return indexes


class SQLitePool(BaseInterface):
    """Interface for a SQLite database file (or ``:memory:``)

    SQLite has no server-side pool: every acquire hands out the same
    underlying connection, so an in-memory database survives between
    lookups.
    """

    scheme = "sqlite"
    connection_class = SQLiteConnection

    def _setup_pool(self):
        self._db_path = self.config.database or ":memory:"
        self._db: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def open(self):
        with self._lock:
            if self._db is None:
                # isolation_level=None leaves BEGIN/COMMIT to the caller
                self._db = sqlite3.connect(
                    self._db_path,
                    isolation_level=None,
                    check_same_thread=False,
                )
                self._db.row_factory = sqlite3.Row

    def close(self):
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None

    def _acquire(self, timeout: Optional[float] = None) -> sqlite3.Connection:
        if self._db is None:
            self.open()
        return self._db

    def _release(self, raw: sqlite3.Connection) -> None: ...
