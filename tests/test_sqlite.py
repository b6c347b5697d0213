import pytest

from auditdal import Database
from auditdal.exception import SchemaError
from auditdal.interface.sqlite import SQLiteConnection, SQLitePool


def test_connection_type(sqlite_db):
    connection = sqlite_db.connection()

    assert isinstance(connection, SQLiteConnection)
    assert isinstance(connection.interface, SQLitePool)


def test_memory_database_is_shared(sqlite_db):
    sqlite_db.connection().statement(
        "INSERT INTO assets (tag) VALUES (?)", ("LAP-001",)
    )
    sqlite_db.registry.purge()

    rows = sqlite_db.connection().select("SELECT tag FROM assets")

    assert rows == [{"tag": "LAP-001"}]


def test_table_exists(sqlite_db):
    assert sqlite_db.registry.table_exists("assets")
    assert not sqlite_db.registry.table_exists("loans")


def test_table_info(sqlite_db):
    info = sqlite_db.registry.get_table_info("assets")

    assert info["table"] == "assets"
    assert info["columns"] == ["id", "tag"]
    assert {
        "name": "assets_tag_unique",
        "unique": True,
        "columns": ["tag"],
    } in info["indexes"]


def test_health_check(sqlite_db):
    assert sqlite_db.registry.test_connection()


def test_closed_pool_reopens(sqlite_db):
    pool = sqlite_db.connection().interface
    pool.close()

    connection = pool.acquire()

    assert connection.select("SELECT 1 AS one") == [{"one": 1}]


def test_introspection_failure(sqlite_db, monkeypatch):
    def broken(self, table):
        raise RuntimeError("database disk image is malformed")

    monkeypatch.setattr(SQLiteConnection, "get_column_listing", broken)

    with pytest.raises(SchemaError, match="malformed"):
        sqlite_db.registry.get_table_info("assets")


def test_database_file(tmp_path):
    path = tmp_path / "audits.sqlite"
    with Database(
        {"connections": {"file": {"driver": "sqlite", "database": str(path)}}}
    ) as db:
        db.transaction(
            lambda: db.connection().statement("CREATE TABLE plans (id INT)")
        )

    assert path.exists()
