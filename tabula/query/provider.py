"""CRUD operations composed from the clause builders and the sanitizer."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from tabula.schema.introspect import introspect_table, list_tables
from tabula.schema.loader import coerce_schema
from tabula.schema.sync import synchronize
from tabula.schema.types import ColumnSpec, SchemaChange, TableSchema
from tabula.shared.database import ConnectionManager, QueryOutcome
from tabula.shared.exceptions import ValueShapeError
from tabula.shared.utils import new_id

from . import clauses
from .sanitize import require_scalar, sanitize_identifier, sanitize_value
from .types import Limit, QuerySpec, Where

_LOGGER = logging.getLogger(__name__)

DEFAULT_ORDER: Mapping[str, str] = {"id": "DESC"}


class Provider:
    """Public query/CRUD/schema surface over a single ConnectionManager."""

    def __init__(self, connection: ConnectionManager | None = None) -> None:
        self._db = connection or ConnectionManager()

    @property
    def connection(self) -> ConnectionManager:
        return self._db

    # -- diagnostics ---------------------------------------------------------

    @property
    def last_query(self) -> str:
        return self._db.last_query

    @property
    def last_error(self) -> str:
        return self._db.last_error

    @property
    def last_total(self) -> int:
        return int(self._db.last_total or 0)

    # -- raw access ----------------------------------------------------------

    def query(self, sql: str) -> QueryOutcome:
        return self._db.query(sql)

    def tables(self) -> list[str]:
        return list_tables(self._db)

    def describe(self, table: str) -> dict[str, ColumnSpec]:
        """Return the live column specs of ``table``."""
        return introspect_table(self._db, table)

    # -- reads ---------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        join: Mapping[str, Mapping[str, str]] | None = None,
        where: Where | None = None,
        group: Sequence[str] | None = None,
        order: Mapping[str, str] | None = DEFAULT_ORDER,
        limit: Limit = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows as dicts and record the unlimited total.

        When ``limit`` is given a second ``COUNT(*)`` with the same join and where
        runs so paginating callers can read ``last_total``.
        """
        spec = QuerySpec(
            table=table,
            columns=columns,
            joins=join,
            where=where,
            group_by=group,
            order_by=order,
            limit=limit,
        )
        outcome = self._db.query(clauses.build_select(spec, escape=self._db.escape))
        records = list(outcome.rows)
        if limit:
            self._db.last_total = self.count(table, where, join=join)
        else:
            self._db.last_total = len(records)
        return records

    def get(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        where: Where | None = None,
        order: Mapping[str, str] | None = DEFAULT_ORDER,
    ) -> dict[str, Any] | None:
        records = self.select(table, columns, None, where, None, order, 1)
        return records[0] if records else None

    def count(
        self,
        table: str,
        where: Where | None = None,
        *,
        join: Mapping[str, Mapping[str, str]] | None = None,
    ) -> int | None:
        sql = clauses.build_count(table, where, join=join, escape=self._db.escape)
        value = _numeric(self._db.query(sql).scalar())
        return None if value is None else int(value)

    def has(self, table: str, where: Where | None = None) -> bool | None:
        total = self.count(table, where)
        return None if total is None else total > 0

    def sum(self, table: str, column: str, where: Where | None = None) -> float | None:
        parts = [
            f"SELECT SUM({sanitize_identifier(column)}) FROM {sanitize_identifier(table)}",
            clauses.build_where(where, escape=self._db.escape),
        ]
        value = _numeric(self._db.query(" ".join(part for part in parts if part)).scalar())
        return None if value is None else float(value)

    # -- writes --------------------------------------------------------------

    def insert(self, table: str, data: Mapping[str, Any]) -> str:
        """Insert one row and return its id, generating one when absent."""
        record = dict(data)
        if not record.get("id"):
            record["id"] = new_id()
        keys: list[str] = []
        values: list[str] = []
        for key, value in record.items():
            keys.append(sanitize_identifier(key))
            values.append(sanitize_value(require_scalar(key, value), escape=self._db.escape))
        sql = (
            f"INSERT INTO {sanitize_identifier(table)} ({', '.join(keys)}) "
            f"VALUES ({', '.join(values)})"
        )
        self._db.query(sql)
        return str(record["id"])

    def update(self, table: str, data: Mapping[str, Any], where: Where) -> bool:
        if not data:
            raise ValueShapeError("Update requires at least one column to set.")
        where_sql = clauses.build_where(where, escape=self._db.escape)
        if not where_sql:
            raise ValueShapeError("Update requires a where clause; refusing to touch every row.")
        sets = [
            f"{sanitize_identifier(key)} = {sanitize_value(require_scalar(key, value), escape=self._db.escape)}"
            for key, value in data.items()
        ]
        self._db.query(f"UPDATE {sanitize_identifier(table)} SET {', '.join(sets)} {where_sql}")
        return True

    def delete(self, table: str, where: Where) -> bool:
        where_sql = clauses.build_where(where, escape=self._db.escape)
        if not where_sql:
            raise ValueShapeError("Delete requires a where clause; use truncate() to clear a table.")
        self._db.query(f"DELETE FROM {sanitize_identifier(table)} {where_sql}")
        return True

    def truncate(self, table: str) -> bool:
        self._db.query(f"TRUNCATE TABLE {sanitize_identifier(table)}")
        return True

    # -- schema --------------------------------------------------------------

    def update_schema(
        self,
        schema: TableSchema | Mapping[str, Any] | str | Path,
        force_destructive: bool = False,
        *,
        dry_run: bool = False,
    ) -> list[SchemaChange]:
        """Converge the live database onto ``schema`` and return the change log."""
        declared = coerce_schema(schema)
        changes = synchronize(
            self._db,
            declared,
            force_destructive=force_destructive,
            dry_run=dry_run,
        )
        _LOGGER.debug("Schema sync produced %d change(s)", len(changes))
        return changes


def _numeric(value: Any) -> float | int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    try:
        return float(str(value))
    except ValueError:
        return None
