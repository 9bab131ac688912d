"""tabula-query CLI entrypoint."""

from __future__ import annotations

from collections.abc import Iterable
import re
from typing import Any

import click

from tabula.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context

from . import render
from .provider import DEFAULT_ORDER
from .render import OUTPUT_FORMAT_CHOICES
from .types import QueryResult

# KEY may end in an operator suffix that itself contains "=", e.g. age[>=]=18.
_CONDITION = re.compile(r"^(?P<key>[^=\[]+(?:\[[^\]]*\])?)=(?P<value>.*)$")
_INTEGER = re.compile(r"^-?(?:0|[1-9]\d*)$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")


@click.group(help="Query MySQL tables through the tabula provider.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for tabula-query commands."""
    cli_ctx.logger.debug("tabula-query group initialised.")


@cli.command("tables")
@pass_cli_context
@handle_cli_errors
def list_tables(cli_ctx: CLIContext) -> None:
    """List the tables of the configured database."""
    names = cli_ctx.provider.tables()
    if not names:
        cli_ctx.logger.info("No tables found.")
        return
    for name in names:
        click.echo(name)


@cli.command("select")
@click.argument("table", type=str)
@click.option("-c", "--column", "columns", multiple=True, help="Column to select (repeatable; default *).")
@click.option(
    "-w",
    "--where",
    "conditions",
    multiple=True,
    metavar="KEY=VALUE",
    help="Filter condition; KEY may carry an operator suffix such as age[>] or name[~].",
)
@click.option("--any", "match_any", is_flag=True, help="Join conditions with OR instead of AND.")
@click.option("--order", "orders", multiple=True, metavar="COLUMN[:ASC|DESC]", help="Ordering (default id:DESC).")
@click.option("--limit", type=int, help="Maximum rows to return.")
@click.option("--offset", type=int, help="Rows to skip (requires --limit).")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def run_select(
    cli_ctx: CLIContext,
    table: str,
    columns: tuple[str, ...],
    conditions: Iterable[str],
    match_any: bool,
    orders: Iterable[str],
    limit: int | None,
    offset: int | None,
    output_format: str,
) -> None:
    """Select rows from TABLE."""
    where = _build_where(conditions, match_any)
    limit_arg: Any = None
    if limit:
        limit_arg = [offset, limit] if offset else limit
    elif offset:
        raise click.ClickException("--offset requires --limit.")

    provider = cli_ctx.provider
    records = provider.select(
        table,
        columns=list(columns) or None,
        where=where,
        order=_parse_orders(orders) or DEFAULT_ORDER,
        limit=limit_arg,
    )
    cli_ctx.logger.debug(f"SQL: {provider.last_query}")
    result = QueryResult.from_records(records, total=provider.last_total, limit_value=limit)
    render.render_query_result(result, output_format=output_format, logger=cli_ctx.logger)


@cli.command("count")
@click.argument("table", type=str)
@click.option("-w", "--where", "conditions", multiple=True, metavar="KEY=VALUE", help="Filter condition.")
@click.option("--any", "match_any", is_flag=True, help="Join conditions with OR instead of AND.")
@pass_cli_context
@handle_cli_errors
def run_count(cli_ctx: CLIContext, table: str, conditions: Iterable[str], match_any: bool) -> None:
    """Count rows of TABLE matching the filters."""
    total = cli_ctx.provider.count(table, _build_where(conditions, match_any))
    click.echo("" if total is None else str(total))


@cli.command("describe")
@click.argument("table", type=str)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(("table", "json")),
)
@pass_cli_context
@handle_cli_errors
def describe_table(cli_ctx: CLIContext, table: str, output_format: str) -> None:
    """Show the live column definitions of TABLE."""
    columns = cli_ctx.provider.describe(table)
    render.render_columns(table, columns, output_format=output_format)


def parse_conditions(conditions: Iterable[str]) -> dict[str, Any]:
    """Parse KEY=VALUE pairs; a repeated KEY becomes a list of alternatives."""
    where: dict[str, Any] = {}
    for item in conditions:
        match = _CONDITION.match(item)
        if not match:
            raise click.ClickException(f"Invalid condition '{item}'. Expected KEY=VALUE.")
        key, value = match.group("key").strip(), _coerce_value(match.group("value"))
        if key in where:
            existing = where[key]
            where[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            where[key] = value
    return where


def _coerce_value(raw: str) -> str | int | float:
    """Numeric-looking values compare as numbers; everything else stays text."""
    if _INTEGER.match(raw):
        return int(raw)
    if _DECIMAL.match(raw):
        return float(raw)
    return raw


def _build_where(conditions: Iterable[str], match_any: bool) -> dict[str, Any] | None:
    where = parse_conditions(conditions)
    if not where:
        return None
    return {"OR": where} if match_any else where


def _parse_orders(orders: Iterable[str]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in orders:
        column, _, direction = item.partition(":")
        parsed[column.strip()] = "ASC" if direction.strip().upper() == "ASC" else "DESC"
    return parsed
