"""Shared pytest fixtures for tabula tests.

The provider and schema synchroniser talk to MySQL through a DatabaseDriver.
Tests swap in ``FakeMySQLDriver``, which keeps MySQL-style column metadata for
``SHOW TABLES``/``SHOW COLUMNS``/``ALTER TABLE`` and forwards ordinary DML to an
in-memory SQLite database, so generated SQL runs end to end without a server.
"""

from __future__ import annotations

import re
import sqlite3
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from tabula.query.provider import Provider
from tabula.shared.config import DatabaseSettings
from tabula.shared.database import ConnectionManager, DatabaseDriver

_CREATE_TABLE = re.compile(r"^CREATE TABLE (\w+) \(", re.IGNORECASE)
_ALTER_TABLE = re.compile(r"^ALTER TABLE (\w+) (.+)$", re.IGNORECASE | re.DOTALL)
_SHOW_COLUMNS = re.compile(r"^SHOW COLUMNS FROM (\w+)$", re.IGNORECASE)
_TRUNCATE = re.compile(r"^TRUNCATE TABLE (\w+)$", re.IGNORECASE)
# MySQL reports types without spaces between arguments.
_TYPE_ARGUMENT_SPACING = re.compile(r"\s*,\s*")
_CLAUSE_SPLIT = re.compile(r",\s*(?=(?:ADD|MODIFY|DROP) )")
_ADD_INDEX = re.compile(r"^ADD (UNIQUE|INDEX) (\w+) \((\w+)\)$")
_DROP_INDEX = re.compile(r"^DROP INDEX (\w+)$")
_DROP_COLUMN = re.compile(r"^DROP COLUMN (\w+)$")
_COLUMN_DEF = re.compile(
    r"^(?P<action>ADD|MODIFY) (?P<name>\w+) (?P<type>.+?) (?P<null>NOT NULL|NULL)"
    r"(?: DEFAULT (?P<default>.+?))?(?: AFTER (?P<after>\w+))?$"
)


class FakeDatabaseError(Exception):
    """Error raised by the fake server for rejected statements."""


class FakeDisconnectError(FakeDatabaseError):
    """Error signalling the fake server dropped the connection."""


@dataclass
class FakeTable:
    columns: list[dict[str, Any]] = field(default_factory=list)
    indexes: dict[str, tuple[str, str]] = field(default_factory=dict)

    def column(self, name: str) -> dict[str, Any] | None:
        for column in self.columns:
            if column["Field"] == name:
                return column
        return None

    def key_for(self, name: str) -> str:
        if name == "id":
            return "PRI"
        kinds = {kind for kind, column in self.indexes.values() if column == name}
        if "UNIQUE" in kinds:
            return "UNI"
        if kinds:
            return "MUL"
        return ""


class FakeCursor:
    def __init__(self, server: FakeMySQLDriver) -> None:
        self._server = server
        self._rows: list[dict[str, Any]] = []
        self.description: Any = None
        self.rowcount = -1

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None

    def execute(self, sql: str) -> None:
        rows, has_result, rowcount = self._server.execute(sql)
        self._rows = rows
        self.description = (("result",),) if has_result else None
        self.rowcount = rowcount

    def fetchall(self) -> list[dict[str, Any]]:
        return list(self._rows)


class FakeConnection:
    def __init__(self, server: FakeMySQLDriver) -> None:
        self._server = server
        self.closed = False

    def cursor(self) -> FakeCursor:
        if self.closed:
            raise FakeDisconnectError("connection already closed")
        return FakeCursor(self._server)

    def close(self) -> None:
        self.closed = True


class FakeMySQLDriver(DatabaseDriver):
    """In-memory stand-in for a MySQL server."""

    name = "fake-mysql"
    errors = (FakeDatabaseError, sqlite3.Error)

    def __init__(self, databases: tuple[str, ...] = ("app",)) -> None:
        self.databases = set(databases)
        self.tables: dict[str, FakeTable] = {}
        self.statements: list[str] = []
        self.connections: list[FakeConnection] = []
        self.refuse_connections = False
        self.fail_matching: str | None = None
        self.disconnect_matching: str | None = None
        self._sqlite = sqlite3.connect(":memory:", isolation_level=None)
        self._sqlite.row_factory = sqlite3.Row

    # -- DatabaseDriver ----------------------------------------------------

    def connect(self, settings: DatabaseSettings) -> FakeConnection:
        if self.refuse_connections:
            raise FakeDatabaseError(f"Can't connect to MySQL server on '{settings.host}'")
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    def select_database(self, connection: Any, name: str) -> None:
        if name not in self.databases:
            raise FakeDatabaseError(f"Unknown database '{name}'")

    def escape(self, connection: Any, value: str) -> str:
        return value.replace("'", "''")

    def is_disconnect(self, exc: BaseException) -> bool:
        return isinstance(exc, FakeDisconnectError)

    # -- statement handling -------------------------------------------------

    def execute(self, sql: str) -> tuple[list[dict[str, Any]], bool, int]:
        self.statements.append(sql)
        if self.disconnect_matching and self.disconnect_matching in sql:
            raise FakeDisconnectError("MySQL server has gone away")
        if self.fail_matching and self.fail_matching in sql:
            raise FakeDatabaseError(f"forced failure for: {sql}")

        stripped = sql.strip()
        if stripped.upper() == "SHOW TABLES":
            return [{"Tables_in_app": name} for name in self.tables], True, len(self.tables)

        match = _SHOW_COLUMNS.match(stripped)
        if match:
            return self._show_columns(match.group(1)), True, 0

        match = _CREATE_TABLE.match(stripped)
        if match:
            self._create_table(match.group(1))
            return [], False, 0

        match = _ALTER_TABLE.match(stripped)
        if match:
            self._alter_table(match.group(1), match.group(2))
            return [], False, 0

        match = _TRUNCATE.match(stripped)
        if match:
            stripped = f"DELETE FROM {match.group(1)}"

        cursor = self._sqlite.execute(stripped)
        if cursor.description is None:
            return [], False, cursor.rowcount
        rows = [dict(row) for row in cursor.fetchall()]
        return rows, True, len(rows)

    def _table(self, name: str) -> FakeTable:
        table = self.tables.get(name)
        if table is None:
            raise FakeDatabaseError(f"Table 'app.{name}' doesn't exist")
        return table

    def _show_columns(self, name: str) -> list[dict[str, Any]]:
        table = self._table(name)
        return [{**column, "Key": table.key_for(column["Field"]), "Extra": ""} for column in table.columns]

    def _create_table(self, name: str) -> None:
        if name in self.tables:
            raise FakeDatabaseError(f"Table '{name}' already exists")
        self._sqlite.execute(
            f"CREATE TABLE {name} (id TEXT NOT NULL PRIMARY KEY, "
            "created_at TEXT DEFAULT CURRENT_TIMESTAMP, updated_at TEXT DEFAULT CURRENT_TIMESTAMP)"
        )
        self.tables[name] = FakeTable(
            columns=[
                {"Field": "id", "Type": "varchar(36)", "Null": "NO", "Default": None},
                {"Field": "created_at", "Type": "timestamp", "Null": "YES", "Default": "CURRENT_TIMESTAMP"},
                {"Field": "updated_at", "Type": "timestamp", "Null": "YES", "Default": "CURRENT_TIMESTAMP"},
            ]
        )

    def _alter_table(self, name: str, body: str) -> None:
        table = self._table(name)
        for clause in _CLAUSE_SPLIT.split(body.strip()):
            clause = clause.strip()
            index_add = _ADD_INDEX.match(clause)
            if index_add:
                kind, index_name, column = index_add.groups()
                if index_name in table.indexes:
                    raise FakeDatabaseError(f"Duplicate key name '{index_name}'")
                if table.column(column) is None:
                    raise FakeDatabaseError(f"Key column '{column}' doesn't exist in table")
                table.indexes[index_name] = (kind, column)
                continue

            index_drop = _DROP_INDEX.match(clause)
            if index_drop:
                index_name = index_drop.group(1)
                if index_name not in table.indexes:
                    raise FakeDatabaseError(f"Can't DROP '{index_name}'; check that column/key exists")
                del table.indexes[index_name]
                continue

            column_drop = _DROP_COLUMN.match(clause)
            if column_drop:
                column = column_drop.group(1)
                if table.column(column) is None:
                    raise FakeDatabaseError(f"Can't DROP '{column}'; check that column/key exists")
                self._sqlite.execute(f"ALTER TABLE {name} DROP COLUMN {column}")
                table.columns = [item for item in table.columns if item["Field"] != column]
                table.indexes = {
                    key: value for key, value in table.indexes.items() if value[1] != column
                }
                continue

            definition = _COLUMN_DEF.match(clause)
            if definition is None:
                raise FakeDatabaseError(f"You have an error in your SQL syntax near '{clause}'")
            self._apply_column_definition(name, table, definition)

    def _apply_column_definition(self, name: str, table: FakeTable, definition: re.Match[str]) -> None:
        column_name = definition.group("name")
        metadata = {
            "Field": column_name,
            "Type": _TYPE_ARGUMENT_SPACING.sub(",", definition.group("type").lower()),
            "Null": "NO" if definition.group("null") == "NOT NULL" else "YES",
            "Default": _parse_default(definition.group("default")),
        }
        existing = table.column(column_name)
        if definition.group("action") == "MODIFY":
            if existing is None:
                raise FakeDatabaseError(f"Unknown column '{column_name}' in '{name}'")
            existing.update(metadata)
            return

        if existing is not None:
            raise FakeDatabaseError(f"Duplicate column name '{column_name}'")
        self._sqlite.execute(f"ALTER TABLE {name} ADD COLUMN {column_name}")
        position = len(table.columns)
        after = definition.group("after")
        if after:
            for offset, column in enumerate(table.columns):
                if column["Field"] == after:
                    position = offset + 1
                    break
            else:
                raise FakeDatabaseError(f"Unknown column '{after}' in '{name}'")
        table.columns.insert(position, metadata)


def _parse_default(raw: str | None) -> str | None:
    if raw is None or raw.upper() == "NULL":
        return None
    if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
        return raw[1:-1].replace("''", "'")
    if raw.upper() in {"NOW()", "CURRENT_TIMESTAMP"}:
        return "CURRENT_TIMESTAMP"
    return raw


@pytest.fixture()
def fake_driver() -> FakeMySQLDriver:
    return FakeMySQLDriver()


@pytest.fixture()
def db_settings() -> DatabaseSettings:
    return DatabaseSettings(host="localhost", user="app", password="secret", name="app")


@pytest.fixture()
def connection_manager(
    db_settings: DatabaseSettings, fake_driver: FakeMySQLDriver
) -> Iterator[ConnectionManager]:
    manager = ConnectionManager(db_settings, driver=fake_driver)
    yield manager
    manager.close()


@pytest.fixture()
def provider(connection_manager: ConnectionManager) -> Provider:
    return Provider(connection_manager)


@pytest.fixture()
def users_table(provider: Provider, fake_driver: FakeMySQLDriver) -> str:
    """Create a ``users`` table with name/email/age columns and return its name."""
    provider.update_schema(
        {
            "users": {
                "name": {"type": "VARCHAR(64)"},
                "email": {"type": "VARCHAR(128)", "index": "unique"},
                "age": {"type": "INT"},
            }
        }
    )
    fake_driver.statements.clear()
    return "users"
