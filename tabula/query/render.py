"""Output rendering helpers for tabula-query."""

from __future__ import annotations

import csv
import datetime as dt
import decimal
import json
import sys
from typing import IO, Mapping

from rich import box
from rich.console import Console
from rich.table import Table

from tabula.schema.types import ColumnSpec
from tabula.shared.logging import Logger

from .types import QueryResult

OUTPUT_FORMAT_CHOICES = ("table", "tsv", "csv", "json")


def render_query_result(
    result: QueryResult,
    *,
    output_format: str,
    logger: Logger,
    stream=None,
) -> None:
    """Render a query result set to the desired format."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "table":
        _render_table(result, logger=logger, stream=output_stream)
    elif fmt == "csv":
        _render_delimited(result, stream=output_stream, delimiter=",")
    elif fmt == "tsv":
        _render_delimited(result, stream=output_stream, delimiter="\t")
    elif fmt == "json":
        _render_json(result, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    if result.truncated:
        logger.info(f"Showing {len(result.rows)} of {result.total} matching rows.")


def render_columns(
    table_name: str,
    columns: Mapping[str, ColumnSpec],
    *,
    output_format: str,
    stream=None,
) -> None:
    """Render introspected column specs as a table or JSON."""
    output_stream = stream or sys.stdout
    if (output_format or "table").lower() == "json":
        payload = {
            "table": table_name,
            "columns": [
                {
                    "name": spec.name,
                    "type": spec.engine_type,
                    "semantic_type": spec.semantic_type.value,
                    "length": spec.length,
                    "null": spec.nullable,
                    "default": spec.default,
                    "index": spec.index.value,
                }
                for spec in columns.values()
            ],
        }
        json.dump(payload, output_stream, indent=2)
        output_stream.write("\n")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    console.print(f"[bold]{table_name}[/bold]")
    column_table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    for heading in ("Column", "Type", "Kind", "Length", "Null", "Default", "Index"):
        column_table.add_column(heading)
    for spec in columns.values():
        column_table.add_row(
            spec.name,
            spec.engine_type,
            spec.semantic_type.value,
            _stringify(spec.length),
            "yes" if spec.nullable else "no",
            _stringify(spec.default),
            "" if spec.index.value == "none" else spec.index.value,
        )
    console.print(column_table)


def _render_table(result: QueryResult, *, logger: Logger, stream: IO[str]) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE_HEAVY, show_header=bool(result.columns), header_style="bold")
    for column in result.columns:
        table.add_column(column or "")

    if result.rows:
        for row in result.rows:
            table.add_row(*[_stringify(cell) for cell in row])
    else:
        logger.info("Query returned zero rows.")

    console.print(table)


def _render_delimited(result: QueryResult, *, stream: IO[str], delimiter: str) -> None:
    writer = csv.writer(stream, delimiter=delimiter)
    if result.columns:
        writer.writerow(result.columns)
    for row in result.rows:
        writer.writerow(_stringify(cell) for cell in row)


def _render_json(result: QueryResult, *, stream: IO[str]) -> None:
    records = [
        {column: _convert_json_value(value) for column, value in zip(result.columns, row)}
        for row in result.rows
    ]
    json.dump(records, stream, indent=2)
    stream.write("\n")


def _stringify(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _convert_json_value(value: object) -> object:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (dt.date, dt.datetime, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return str(value)
    return value
