"""Value types describing declared and live table schemas."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from tabula.shared.exceptions import SchemaDefinitionError

RESERVED_COLUMNS = ("id", "created_at", "updated_at")
DEFAULT_COLUMN_TYPE = "VARCHAR(128)"

_COLUMN_NAME = re.compile(r"^[A-Za-z0-9_.]+$")


class SemanticType(str, Enum):
    INT = "int"
    FLOAT = "float"
    STRING = "string"


class IndexKind(str, Enum):
    NONE = "none"
    INDEX = "index"
    UNIQUE = "unique"


class ChangeKind(str, Enum):
    CREATE_TABLE = "create_table"
    ADD_COLUMN = "add_column"
    MODIFY_COLUMN = "modify_column"
    DROP_COLUMN = "drop_column"
    ADD_INDEX = "add_index"
    DROP_INDEX = "drop_index"


class ChangeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    PLANNED = "planned"


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    """One column, either introspected from a live table or declared as a target."""

    name: str
    engine_type: str
    semantic_type: SemanticType
    length: int | None = None
    nullable: bool = True
    default: str | int | float | None = None
    index: IndexKind = IndexKind.NONE

    def __post_init__(self) -> None:
        if not _COLUMN_NAME.match(self.name or ""):
            raise SchemaDefinitionError(f"Invalid column name '{self.name}'.")

    @property
    def index_name(self) -> str:
        return f"index_{self.name}"


@dataclass(frozen=True, slots=True)
class TableSchema:
    """Ordered, read-only mapping of table name to ordered column specs."""

    tables: Mapping[str, Mapping[str, ColumnSpec]]

    @classmethod
    def build(cls, tables: Mapping[str, Mapping[str, ColumnSpec]]) -> TableSchema:
        frozen = {name: MappingProxyType(dict(columns)) for name, columns in tables.items()}
        return cls(tables=MappingProxyType(frozen))

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def __getitem__(self, table: str) -> Mapping[str, ColumnSpec]:
        return self.tables[table]

    def items(self):
        return self.tables.items()


@dataclass(frozen=True, slots=True)
class SchemaChange:
    """One DDL step of a synchronization run plus how it was handled."""

    kind: ChangeKind
    table: str
    sql: str
    column: str | None = None
    index: str | None = None
    status: ChangeStatus = ChangeStatus.APPLIED

    @property
    def performed(self) -> bool:
        return self.status is ChangeStatus.APPLIED

    def describe(self) -> str:
        if self.kind is ChangeKind.CREATE_TABLE:
            text = f"Added table [{self.table}]"
        elif self.kind is ChangeKind.ADD_COLUMN:
            text = f"Altered table [{self.table}] added column [{self.column}]"
            if self.index:
                text += f" with index [{self.index}]"
        elif self.kind is ChangeKind.MODIFY_COLUMN:
            text = f"Altered table [{self.table}] modified column [{self.column}]"
        elif self.kind is ChangeKind.DROP_COLUMN:
            text = f"Altered table [{self.table}] dropped column [{self.column}]"
        elif self.kind is ChangeKind.ADD_INDEX:
            text = f"Altered table [{self.table}] added index [{self.index}]"
        else:
            text = f"Altered table [{self.table}] dropped index [{self.index}]"

        if self.status is ChangeStatus.SKIPPED:
            return f"* NOT PERFORMED (needs force destructive): {text}"
        if self.status is ChangeStatus.PLANNED:
            return f"* PLANNED (dry run): {text}"
        return text

    def __str__(self) -> str:
        return self.describe()
