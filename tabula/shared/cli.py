"""Shared CLI helpers and decorators."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import click

from tabula.query.provider import Provider

from .config import AppConfig, load_config
from .database import ConnectionManager
from .exceptions import ConfigurationError, TabulaError
from .logging import Logger, get_logger

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(slots=True)
class CLIContext:
    """Runtime context shared across CLI invocations."""

    config: AppConfig
    provider: Provider
    dry_run: bool
    verbose: bool
    logger: Logger


pass_cli_context = click.make_pass_decorator(CLIContext)


def build_provider(config: AppConfig) -> Provider:
    """Return a Provider whose connection opens lazily from ``config``."""
    return Provider(ConnectionManager(config.database))


def common_cli_options(func: F) -> F:
    """Decorator injecting shared CLI options and context creation."""

    @click.option("--config", "config_path", type=click.Path(path_type=str), help="Path to config file.")
    @click.option("--database", "database_name", type=str, help="Override the database name (DB_NAME).")
    @click.option("--dry-run", is_flag=True, help="Preview actions without side effects.")
    @click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
    @click.pass_context
    @functools.wraps(func)
    def wrapper(
        ctx: click.Context,
        *args: Any,
        config_path: str | None = None,
        database_name: str | None = None,
        dry_run: bool = False,
        verbose: bool = False,
        **kwargs: Any,
    ) -> Any:
        try:
            app_config = load_config(config_path)
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc

        if database_name:
            app_config = app_config.with_database_name(database_name)

        cli_ctx = CLIContext(
            config=app_config,
            provider=build_provider(app_config),
            dry_run=dry_run,
            verbose=verbose,
            logger=get_logger(verbose=verbose),
        )
        ctx.obj = cli_ctx
        ctx.call_on_close(cli_ctx.provider.connection.close)
        kwargs["cli_ctx"] = cli_ctx
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def handle_cli_errors(func: F) -> F:
    """Convert project exceptions into Click-friendly errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ConfigurationError as exc:
            raise click.ClickException(f"Configuration error: {exc}") from exc
        except TabulaError as exc:
            raise click.ClickException(str(exc)) from exc
        except click.ClickException:
            raise
        except Exception as exc:  # pragma: no cover
            raise click.ClickException(f"Unexpected error: {exc}") from exc

    return wrapper  # type: ignore[return-value]
