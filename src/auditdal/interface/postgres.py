from typing import Any, Dict, List, Optional

from psycopg import Connection as PsycopgConnection
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from auditdal.interface.base import BaseInterface, Bindings, Connection


class PostgresConnection(Connection):
    raw: PsycopgConnection

    _TABLE_QUERY = """
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = current_schema() AND table_name = %s
    """

    _COLUMN_QUERY = """
        SELECT column_name FROM information_schema.columns
        WHERE table_schema = current_schema() AND table_name = %s
        ORDER BY ordinal_position
    """

    _INDEX_QUERY = """
        SELECT i.relname AS name,
               ix.indisunique AS is_unique,
               array_agg(a.attname ORDER BY k.ord) AS columns
        FROM pg_index ix
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        CROSS JOIN LATERAL unnest(ix.indkey::int2[])
            WITH ORDINALITY AS k(attnum, ord)
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
        WHERE t.relname = %s AND n.nspname = current_schema()
        GROUP BY i.relname, ix.indisunique
        ORDER BY i.relname
    """

    def statement(self, sql: str, bindings: Bindings = None) -> None:
        with self.raw.cursor() as cursor:
            cursor.execute(sql, bindings)

    def select(
        self, sql: str, bindings: Bindings = None
    ) -> List[Dict[str, Any]]:
        with self.raw.cursor() as cursor:
            cursor.execute(sql, bindings)
            return list(cursor.fetchall())

    def has_table(self, table: str) -> bool:
        return bool(self.select(self._TABLE_QUERY, (table,)))

    def get_column_listing(self, table: str) -> List[str]:
        rows = self.select(self._COLUMN_QUERY, (table,))
        return [row["column_name"] for row in rows]

    def get_indexes(self, table: str) -> List[Dict[str, Any]]:
        return [
            {
                "name": row["name"],
                "unique": row["is_unique"],
                "columns": list(row["columns"]),
            }
            for row in self.select(self._INDEX_QUERY, (table,))
        ]


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database"""

    scheme = "pgsql"
    aliases = ("postgres", "postgresql")
    connection_class = PostgresConnection

    def _setup_pool(self):
        config = self.config
        conninfo = make_conninfo(
            host=config.host,
            port=config.port,
            dbname=config.database,
            user=config.username,
            password=config.password,
            client_encoding=config.charset,
        )
        # Transactions are issued as explicit SQL by the coordinator
        self._pool = ConnectionPool(
            conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            open=False,
            kwargs={"autocommit": True, "row_factory": dict_row},
        )

    def open(self):
        """Open connections to the pool"""
        self._pool.open()

    def close(self):
        """Close connections to the pool"""
        self._pool.close()

    def _acquire(self, timeout: Optional[float] = None) -> PsycopgConnection:
        return self._pool.getconn(timeout=timeout)

    def _release(self, raw: PsycopgConnection) -> None:
        self._pool.putconn(raw)
