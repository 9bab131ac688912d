"""tabula-schema CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import click

from tabula.query import render
from tabula.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from tabula.shared.exceptions import ConfigurationError

from .loader import load_schema
from .types import ChangeStatus


@click.group(help="Synchronise MySQL tables with a declarative YAML schema.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for tabula-schema commands."""
    cli_ctx.logger.debug("tabula-schema group initialised.")


@cli.command("update")
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(path_type=Path),
    help="Schema YAML file (defaults to TABULA_SCHEMA_PATH or schema.path in config).",
)
@click.option("--force", is_flag=True, help="Also perform destructive changes (drop/modify).")
@pass_cli_context
@handle_cli_errors
def update_schema(cli_ctx: CLIContext, schema_path: Path | None, force: bool) -> None:
    """Bring the database in line with the schema description."""
    path = _schema_path(cli_ctx, schema_path)
    logger = cli_ctx.logger
    logger.info(f"Updating database schema from {path}")
    if cli_ctx.dry_run:
        logger.info("Dry run: no statements will be executed.")

    changes = cli_ctx.provider.update_schema(path, force, dry_run=cli_ctx.dry_run)
    for change in changes:
        logger.change(str(change))

    skipped = sum(1 for change in changes if change.status is ChangeStatus.SKIPPED)
    if skipped:
        logger.warning(f"{skipped} destructive change(s) skipped; rerun with --force to apply them.")

    if not changes:
        logger.success("Database schema is up to date!")
    elif cli_ctx.dry_run:
        logger.success(f"Dry run planned {len(changes)} change(s).")
    else:
        logger.success("Database schema updated successfully!")


@cli.command("show")
@click.option("--schema", "schema_path", type=click.Path(path_type=Path), help="Schema YAML file.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(("table", "json")),
)
@pass_cli_context
@handle_cli_errors
def show_schema(cli_ctx: CLIContext, schema_path: Path | None, output_format: str) -> None:
    """Print the declared tables and columns without touching the database."""
    schema = load_schema(_schema_path(cli_ctx, schema_path))
    for table, columns in schema.items():
        render.render_columns(table, columns, output_format=output_format)


def _schema_path(cli_ctx: CLIContext, override: Path | None) -> Path:
    if override is not None:
        return override
    configured = cli_ctx.config.schema.path
    if configured is None:
        raise ConfigurationError(
            "No schema file given; pass --schema or set TABULA_SCHEMA_PATH."
        )
    return configured
