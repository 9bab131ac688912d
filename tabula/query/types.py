"""Data structures shared across query modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

Where = Mapping[str, Any]
Limit = int | Sequence[int | str] | None


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """Everything needed to render one SELECT statement."""

    table: str
    columns: Sequence[str] | None = None
    joins: Mapping[str, Mapping[str, str]] | None = None
    where: Where | None = None
    group_by: Sequence[str] | None = None
    order_by: Mapping[str, str] | None = None
    limit: Limit = None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Structured result set handed to the CLI renderers."""

    columns: tuple[str, ...]
    rows: Sequence[tuple[Any, ...]]
    total: int | None = None
    limit_value: int | None = None

    @property
    def truncated(self) -> bool:
        return self.total is not None and self.total > len(self.rows)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping[str, Any]],
        *,
        total: int | None = None,
        limit_value: int | None = None,
    ) -> QueryResult:
        columns: tuple[str, ...] = tuple(records[0].keys()) if records else ()
        rows = [tuple(record.get(column) for column in columns) for record in records]
        return cls(columns=columns, rows=rows, total=total, limit_value=limit_value)
