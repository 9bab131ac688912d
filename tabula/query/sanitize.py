"""Identifier whitelisting and literal escaping.

Every table/column name and literal value that ends up in SQL text passes
through this module. Identifiers are reduced to ``[A-Za-z0-9_.]``; literals are
either numeric, one of the ``NOW()``/``NULL`` sentinels, or quoted and escaped.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable

from pymysql.converters import escape_string

from tabula.shared.exceptions import IdentifierError, ValueShapeError

Escaper = Callable[[str], str]

SQL_SENTINELS = frozenset({"NOW()", "NULL"})
DEFAULT_SENTINELS = frozenset({"CURRENT_TIMESTAMP", "NOW()"})

_IDENTIFIER_STRIP = re.compile(r"[^A-Za-z0-9_.]")


def sanitize_identifier(raw: str) -> str:
    """Strip everything outside ``[A-Za-z0-9_.]``; raise if nothing is left."""
    if not raw:
        raise IdentifierError("Identifier value is empty.")
    cleaned = _IDENTIFIER_STRIP.sub("", str(raw)).strip()
    if not cleaned:
        raise IdentifierError(f"Identifier '{raw}' is empty after sanitization.")
    return cleaned


def is_scalar(value: Any) -> bool:
    """Return True for str/int/float values; bool is deliberately excluded."""
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def require_scalar(key: str, value: Any) -> str | int | float:
    if not is_scalar(value):
        raise ValueShapeError(
            f"Value for '{key}' must be one of str, int or float, got {type(value).__name__}."
        )
    return value


def _require_finite(value: Any) -> None:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueShapeError(f"Cannot render non-finite float {value!r} as a SQL literal.")


def sanitize_value(value: str | int | float, *, like: bool = False, escape: Escaper = escape_string) -> str:
    """Render a scalar as a SQL literal.

    ``like`` wraps the escaped value in ``'%...%'``. Otherwise the exact strings
    ``NOW()`` and ``NULL`` pass through untouched, numbers stay unquoted and
    everything else is quoted and escaped.
    """
    if not is_scalar(value):
        raise ValueShapeError(f"Cannot render {type(value).__name__} as a SQL literal.")
    _require_finite(value)
    if like:
        return f"'%{escape(str(value))}%'"
    if isinstance(value, str):
        if value in SQL_SENTINELS:
            return value
        return f"'{escape(value)}'"
    return repr(value) if isinstance(value, float) else str(value)


def quote_default(value: str | int | float | None, escape: Escaper = escape_string) -> str:
    """Render a column DEFAULT value for DDL."""
    if value is None:
        return "NULL"
    _require_finite(value)
    if isinstance(value, str):
        if value.strip().upper() in DEFAULT_SENTINELS:
            return value.strip().upper()
        return f"'{escape(value)}'"
    return repr(value) if isinstance(value, float) else str(value)
