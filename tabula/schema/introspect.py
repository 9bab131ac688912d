"""Read live column metadata and classify engine types."""

from __future__ import annotations

import re
from typing import Any

from tabula.query.sanitize import sanitize_identifier
from tabula.shared.database import ConnectionManager

from .types import ColumnSpec, IndexKind, SemanticType

TEXT_LENGTH = 60000
UNSPECIFIED_CHAR_LENGTH = 255

_INT_TYPE = re.compile(r"int|bool", re.IGNORECASE)
_FLOAT_TYPE = re.compile(r"float", re.IGNORECASE)
_BOUNDED_CHAR = re.compile(r"^(?:var)?char\((\d*)\)", re.IGNORECASE)


def classify_engine_type(engine_type: str) -> tuple[SemanticType, int | None]:
    """Map an engine type string onto int/float/string plus a string length."""
    if _INT_TYPE.search(engine_type):
        return SemanticType.INT, None
    if _FLOAT_TYPE.search(engine_type):
        return SemanticType.FLOAT, None

    normalised = engine_type.strip().lower()
    bounded = _BOUNDED_CHAR.match(normalised)
    if bounded:
        width = bounded.group(1)
        return SemanticType.STRING, int(width) if width else UNSPECIFIED_CHAR_LENGTH
    if normalised == "text":
        return SemanticType.STRING, TEXT_LENGTH
    return SemanticType.STRING, None


def index_kind_from_key(key: Any) -> IndexKind:
    """Translate the SHOW COLUMNS ``Key`` flag (PRI/MUL/UNI/'')."""
    flag = _text(key).upper()
    if flag in {"PRI", "MUL"}:
        return IndexKind.INDEX
    if flag == "UNI":
        return IndexKind.UNIQUE
    return IndexKind.NONE


def list_tables(connection: ConnectionManager) -> list[str]:
    names: list[str] = []
    for row in connection.query("SHOW TABLES").rows:
        value = _text(next(iter(row.values()), None))
        if value:
            names.append(value)
    return names


def introspect_table(connection: ConnectionManager, table: str) -> dict[str, ColumnSpec]:
    """Return the live columns of ``table`` keyed by name, in table order."""
    outcome = connection.query(f"SHOW COLUMNS FROM {sanitize_identifier(table)}")
    columns: dict[str, ColumnSpec] = {}
    for row in outcome.rows:
        name = _text(row.get("Field"))
        engine_type = _text(row.get("Type"))
        if not name or not engine_type:
            continue
        semantic_type, length = classify_engine_type(engine_type)
        default = row.get("Default")
        columns[name] = ColumnSpec(
            name=name,
            engine_type=engine_type,
            semantic_type=semantic_type,
            length=length,
            nullable=_text(row.get("Null")).lower() == "yes",
            default=_text(default) if default is not None else None,
            index=index_kind_from_key(row.get("Key")),
        )
    return columns


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
