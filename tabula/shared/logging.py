"""Console output for tabula-query and tabula-schema.

Query rows and schema change lines go to stdout so they can be piped or
diffed; progress, warnings and errors go to stderr.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.theme import Theme
from rich.traceback import install

install(show_locals=False)

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "debug": "dim",
        "change": "magenta",
    }
)

# No highlighting: identifiers such as "index_user_id" or "varchar(36)" must
# reach the terminal unstyled.
_stdout_console = Console(theme=_THEME, highlight=False)
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)


def _emit(console: Console, message: str, style: str, **options: bool) -> None:
    # markup off so "[users]" in change lines is not read as a Rich tag
    console.print(message, style=style, markup=False, **options)


@dataclass(slots=True)
class Logger:
    """Status chatter on stderr, schema change lines on stdout.

    ``debug`` lines are only printed when the CLI runs with ``--verbose``.
    """

    verbose: bool = False

    @property
    def console(self) -> Console:
        """stdout console used by the query renderers."""
        return _stdout_console

    def info(self, message: str) -> None:
        _emit(_stderr_console, message, "info")

    def success(self, message: str) -> None:
        _emit(_stderr_console, message, "success")

    def warning(self, message: str) -> None:
        _emit(_stderr_console, message, "warning")

    def error(self, message: str) -> None:
        _emit(_stderr_console, message, "error")

    def change(self, message: str) -> None:
        # one change per line, never wrapped, so the output stays line-diffable
        _emit(_stdout_console, message, "change", soft_wrap=True)

    def debug(self, message: str) -> None:
        if self.verbose:
            _emit(_stderr_console, message, "debug")


def get_logger(verbose: bool = False) -> Logger:
    return Logger(verbose=verbose)
