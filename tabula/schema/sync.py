"""Diff a declared schema against live tables and converge them with DDL.

Changes are generated and executed in one pass, table by table, in declaration
order. Destructive steps (dropping columns or indexes, modifying existing
columns) only run when ``force_destructive`` is set; otherwise they are
reported as skipped so repeated runs keep surfacing them.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from tabula.query.sanitize import DEFAULT_SENTINELS, Escaper, quote_default, sanitize_identifier
from tabula.shared.database import ConnectionManager
from tabula.shared.exceptions import SchemaSyncError, StatementError

from .introspect import classify_engine_type, introspect_table, list_tables
from .types import (
    RESERVED_COLUMNS,
    ChangeKind,
    ChangeStatus,
    ColumnSpec,
    IndexKind,
    SchemaChange,
    TableSchema,
)

_LOGGER = logging.getLogger(__name__)

CREATE_TABLE_TEMPLATE = (
    "CREATE TABLE {table} ("
    "id VARCHAR(36) NOT NULL, "
    "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, "
    "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP, "
    "PRIMARY KEY (id))"
)

_TYPE_ALIASES = {
    "integer": "int",
    "bool": "tinyint",
    "boolean": "tinyint",
}
_INT_DISPLAY_WIDTH = re.compile(r"^(tinyint|smallint|mediumint|int|bigint)\(\d+\)")
# Whitespace inside a type argument list, e.g. "decimal(10, 2)".
_ARGUMENT_SPACING = re.compile(r"\s*,\s*|(?<=\()\s+|\s+(?=\))")


def reserved_columns() -> dict[str, ColumnSpec]:
    """Live-equivalent specs of the three columns every table owns."""
    specs = (
        ColumnSpec("id", "varchar(36)", *classify_engine_type("varchar(36)"), nullable=False, index=IndexKind.INDEX),
        ColumnSpec("created_at", "timestamp", *classify_engine_type("timestamp"), default="CURRENT_TIMESTAMP"),
        ColumnSpec("updated_at", "timestamp", *classify_engine_type("timestamp"), default="CURRENT_TIMESTAMP"),
    )
    return {spec.name: spec for spec in specs}


def normalise_type(engine_type: str) -> str:
    lowered = re.sub(r"\s+", " ", engine_type.strip().lower())
    lowered = _ARGUMENT_SPACING.sub(lambda match: match.group().strip(), lowered)
    lowered = _TYPE_ALIASES.get(lowered, lowered)
    return _INT_DISPLAY_WIDTH.sub(r"\1", lowered)


def normalise_default(value: Any) -> str | float | None:
    if value is None:
        return None
    text = str(value).strip()
    upper = text.upper()
    if upper in DEFAULT_SENTINELS or upper == "CURRENT_TIMESTAMP()":
        return "current_timestamp"
    try:
        return float(text)
    except ValueError:
        return text.lower()


def column_differs(declared: ColumnSpec, live: ColumnSpec) -> bool:
    """Return True when type, nullability or default need a MODIFY."""
    if normalise_type(declared.engine_type) != normalise_type(live.engine_type):
        return True
    if declared.nullable != live.nullable:
        return True
    return normalise_default(declared.default) != normalise_default(live.default)


class SchemaSynchronizer:
    """Run one synchronization pass over a declared TableSchema."""

    def __init__(
        self,
        connection: ConnectionManager,
        *,
        force_destructive: bool = False,
        dry_run: bool = False,
        escape: Escaper | None = None,
    ) -> None:
        self._db = connection
        self._force = force_destructive
        self._dry_run = dry_run
        self._escape = escape or connection.escape
        self._changes: list[SchemaChange] = []

    def run(self, schema: TableSchema) -> list[SchemaChange]:
        self._changes = []
        existing_tables = set(list_tables(self._db))
        for table, columns in schema.items():
            self._sync_table(sanitize_identifier(table), columns, existing_tables)
        return list(self._changes)

    # -- per table -----------------------------------------------------------

    def _sync_table(self, table: str, declared: Any, existing_tables: set[str]) -> None:
        created = False
        if table not in existing_tables:
            self._apply(
                ChangeKind.CREATE_TABLE,
                table,
                CREATE_TABLE_TEMPLATE.format(table=table),
                gated=False,
                failure=f"Adding table ({table})",
            )
            existing_tables.add(table)
            created = True

        if created and self._dry_run:
            live = reserved_columns()
        else:
            live = introspect_table(self._db, table)

        self._drop_pass(table, declared, live)
        self._add_modify_pass(table, declared, live)

    def _drop_pass(self, table: str, declared: Any, live: dict[str, ColumnSpec]) -> None:
        for name in list(live):
            if name in RESERVED_COLUMNS or name in declared:
                continue
            self._apply(
                ChangeKind.DROP_COLUMN,
                table,
                f"ALTER TABLE {table} DROP COLUMN {name}",
                column=name,
                gated=True,
                failure=f"Dropping column ({name})",
            )

    def _add_modify_pass(self, table: str, declared: Any, live: dict[str, ColumnSpec]) -> None:
        after = "id"
        for column in declared.values():
            if column.name in RESERVED_COLUMNS:
                continue
            current = live.get(column.name)
            if current is None:
                self._add_column(table, column, after)
                live[column.name] = column
            else:
                if column_differs(column, current):
                    self._apply(
                        ChangeKind.MODIFY_COLUMN,
                        table,
                        f"ALTER TABLE {table} MODIFY {self._column_definition(column)}",
                        column=column.name,
                        gated=True,
                        failure=f"Updating column ({column.name})",
                    )
                if column.index is not current.index:
                    self._reindex(table, column, current)
            after = column.name

    def _add_column(self, table: str, column: ColumnSpec, after: str) -> None:
        sql = f"ALTER TABLE {table} ADD {self._column_definition(column)} AFTER {after}"
        index_name = None
        if column.index is not IndexKind.NONE:
            sql += f", {self._add_index_clause(column)}"
            index_name = column.index_name
        self._apply(
            ChangeKind.ADD_COLUMN,
            table,
            sql,
            column=column.name,
            index=index_name,
            gated=False,
            failure=f"Adding column ({column.name})",
        )

    def _reindex(self, table: str, column: ColumnSpec, current: ColumnSpec) -> None:
        dropped = True
        if current.index is not IndexKind.NONE:
            change = self._apply(
                ChangeKind.DROP_INDEX,
                table,
                f"ALTER TABLE {table} DROP INDEX {column.index_name}",
                column=column.name,
                index=column.index_name,
                gated=True,
                failure=f"Dropping index ({column.name})",
            )
            dropped = change.status is not ChangeStatus.SKIPPED
        if column.index is not IndexKind.NONE:
            self._apply(
                ChangeKind.ADD_INDEX,
                table,
                f"ALTER TABLE {table} {self._add_index_clause(column)}",
                column=column.name,
                index=column.index_name,
                gated=False,
                failure=f"Adding index ({column.name})",
                # The surviving index_<column> would collide with the new one.
                blocked=not dropped,
            )

    # -- rendering -----------------------------------------------------------

    def _column_definition(self, column: ColumnSpec) -> str:
        parts = [column.name, column.engine_type, "NULL" if column.nullable else "NOT NULL"]
        if column.default is not None or column.nullable:
            parts.append(f"DEFAULT {quote_default(column.default, self._escape)}")
        return " ".join(parts)

    @staticmethod
    def _add_index_clause(column: ColumnSpec) -> str:
        keyword = "UNIQUE" if column.index is IndexKind.UNIQUE else "INDEX"
        return f"ADD {keyword} {column.index_name} ({column.name})"

    # -- execution -----------------------------------------------------------

    def _apply(
        self,
        kind: ChangeKind,
        table: str,
        sql: str,
        *,
        gated: bool,
        failure: str,
        column: str | None = None,
        index: str | None = None,
        blocked: bool = False,
    ) -> SchemaChange:
        if (gated and not self._force) or blocked:
            status = ChangeStatus.SKIPPED
        elif self._dry_run:
            status = ChangeStatus.PLANNED
        else:
            status = ChangeStatus.APPLIED
            try:
                self._db.query(sql)
            except StatementError as exc:
                raise SchemaSyncError(f"{failure} failed: {exc} SQL: {sql}", sql=sql) from exc

        change = SchemaChange(kind=kind, table=table, sql=sql, column=column, index=index, status=status)
        if status is ChangeStatus.SKIPPED:
            _LOGGER.warning("Skipped destructive change: %s", sql)
        self._changes.append(change)
        return change


def synchronize(
    connection: ConnectionManager,
    schema: TableSchema,
    *,
    force_destructive: bool = False,
    dry_run: bool = False,
    escape: Escaper | None = None,
) -> list[SchemaChange]:
    """Converge live tables onto ``schema``; returns changes in execution order."""
    synchronizer = SchemaSynchronizer(
        connection,
        force_destructive=force_destructive,
        dry_run=dry_run,
        escape=escape,
    )
    return synchronizer.run(schema)
