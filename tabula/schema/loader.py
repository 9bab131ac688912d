"""Load declarative schema descriptions from YAML files or mappings.

Format::

    users:
      name:
        type: VARCHAR(64)   # default VARCHAR(128); "string" means the same
        default: null
        null: true          # default true
        index: unique       # "unique", any other truthy value, or absent
      email:                # a bare column takes every default
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from tabula.query.sanitize import sanitize_identifier
from tabula.shared import paths
from tabula.shared.exceptions import SchemaDefinitionError

from .introspect import classify_engine_type
from .types import DEFAULT_COLUMN_TYPE, RESERVED_COLUMNS, ColumnSpec, IndexKind, TableSchema

_LOGGER = logging.getLogger(__name__)


def load_schema(path: str | Path) -> TableSchema:
    """Read and parse a YAML schema description."""
    resolved = paths.resolve_path(path)
    if not resolved.is_file():
        raise SchemaDefinitionError(f"DB schema file not found: ({resolved})")
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise SchemaDefinitionError(f"DB schema file is not valid YAML: ({resolved}) {exc}") from exc
    return parse_schema(data, source=str(resolved))


def coerce_schema(schema: TableSchema | Mapping[str, Any] | str | Path) -> TableSchema:
    if isinstance(schema, TableSchema):
        return schema
    if isinstance(schema, (str, Path)):
        return load_schema(schema)
    return parse_schema(schema)


def parse_schema(data: Any, *, source: str = "<mapping>") -> TableSchema:
    if not data or not isinstance(data, Mapping):
        raise SchemaDefinitionError(f"DB schema is empty or not formatted correctly: ({source})")

    tables: dict[str, dict[str, ColumnSpec]] = {}
    for raw_table, raw_columns in data.items():
        if not raw_table or not isinstance(raw_table, str):
            raise SchemaDefinitionError(f"DB schema is not formatted correctly: ({source}) invalid table name.")
        table = sanitize_identifier(raw_table)
        if not raw_columns or not isinstance(raw_columns, Mapping):
            raise SchemaDefinitionError(
                f"DB schema is not formatted correctly: ({source}) invalid columns for table ({table})."
            )
        columns: dict[str, ColumnSpec] = {}
        for raw_name, definition in raw_columns.items():
            column = parse_column(raw_name, definition)
            if column.name in RESERVED_COLUMNS:
                _LOGGER.warning("Ignoring reserved column '%s' declared on table '%s'", column.name, table)
                continue
            columns[column.name] = column
        tables[table] = columns
    return TableSchema.build(tables)


def parse_column(raw_name: Any, definition: Any) -> ColumnSpec:
    """Build a declared ColumnSpec, applying the description defaults."""
    if not isinstance(raw_name, str) or not raw_name.strip():
        raise SchemaDefinitionError("Column name is required in the schema description and must be a string.")
    if definition is None:
        definition = {}
    if not isinstance(definition, Mapping):
        raise SchemaDefinitionError(f"Definition for column '{raw_name}' must be a mapping.")

    engine_type = _engine_type(definition.get("type"))
    semantic_type, length = classify_engine_type(engine_type)
    return ColumnSpec(
        name=sanitize_identifier(raw_name),
        engine_type=engine_type,
        semantic_type=semantic_type,
        length=length,
        nullable=bool(definition.get("null", True)),
        default=_default(definition.get("default")),
        index=_index_kind(definition.get("index")),
    )


def _engine_type(raw: Any) -> str:
    if isinstance(raw, str) and raw.strip() and raw.strip().lower() != "string":
        return raw.strip()
    return DEFAULT_COLUMN_TYPE


def _default(raw: Any) -> str | int | float | None:
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw
    return None


def _index_kind(raw: Any) -> IndexKind:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "unique":
            return IndexKind.UNIQUE
        if lowered in {"", "none", "false", "no", "0"}:
            return IndexKind.NONE
        return IndexKind.INDEX
    return IndexKind.INDEX if raw else IndexKind.NONE
