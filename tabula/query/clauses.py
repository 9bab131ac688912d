"""Builders turning structured input into SQL clause fragments.

Each builder returns its fragment without surrounding whitespace, or an empty
string when there is nothing to render; ``build_select`` joins the non-empty
pieces.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pymysql.converters import escape_string

from tabula.shared.exceptions import ValueShapeError

from .sanitize import Escaper, is_scalar, sanitize_identifier, sanitize_value
from .types import Limit, QuerySpec, Where

_LOGGER = logging.getLogger(__name__)

GROUP_KEYS = ("AND", "OR")
MATCH_NOTHING = "1 = 0"
OPERATORS = {
    "!": "!=",
    ">": ">",
    ">=": ">=",
    "<": "<",
    "<=": "<=",
    "~": "LIKE",
}

_AGGREGATE_ALIAS = re.compile(r"^\s*(SUM|COUNT|MAX|MIN)\(([A-Za-z0-9_.]+)\)\s+AS\s+([A-Za-z0-9_]+)\s*$", re.IGNORECASE)
_COLUMN_ALIAS = re.compile(r"^\s*([A-Za-z0-9_.]+)\s+AS\s+([A-Za-z0-9_.]+)\s*$", re.IGNORECASE)
_OPERATOR_SUFFIX = re.compile(r"^(?P<column>.*?)\[(?P<operator>[^\]]*)\]$")


def build_columns(columns: Sequence[str] | None) -> str:
    if not columns:
        return "*"
    rendered: list[str] = []
    for column in columns:
        if column == "*":
            rendered.append("*")
            continue
        aggregate = _AGGREGATE_ALIAS.match(column)
        if aggregate:
            func, target, alias = aggregate.groups()
            rendered.append(
                f"{func.upper()}({sanitize_identifier(target)}) AS '{sanitize_identifier(alias)}'"
            )
            continue
        aliased = _COLUMN_ALIAS.match(column)
        if aliased:
            target, alias = aliased.groups()
            rendered.append(f"{sanitize_identifier(target)} AS '{sanitize_identifier(alias)}'")
            continue
        rendered.append(sanitize_identifier(column))
    return ", ".join(rendered)


def parse_condition_key(key: str) -> tuple[str, str]:
    """Split ``column[op]`` into the sanitized column and its SQL operator."""
    stripped = key.strip()
    match = _OPERATOR_SUFFIX.match(stripped)
    if not match:
        return sanitize_identifier(stripped), "="
    suffix = match.group("operator")
    operator = OPERATORS.get(suffix)
    if operator is None:
        _LOGGER.warning("Unknown where operator '[%s]' on key '%s'; using '='", suffix, key)
        operator = "="
    return sanitize_identifier(match.group("column")), operator


def build_where(
    where: Where | None,
    *,
    conjunction: str = "AND",
    add_label: bool = True,
    escape: Escaper = escape_string,
) -> str:
    """Render a where mapping, recursing into ``AND``/``OR`` group keys."""
    if not where:
        return ""
    if not isinstance(where, Mapping):
        raise ValueShapeError(f"Where clause must be a mapping, got {type(where).__name__}.")

    parts: list[str] = []
    for key, value in where.items():
        if key in GROUP_KEYS:
            if not isinstance(value, Mapping):
                raise ValueShapeError(f"Where group '{key}' must map to a mapping of conditions.")
            inner = build_where(value, conjunction=key, add_label=False, escape=escape)
            if inner:
                parts.append(f"( {inner} )")
            continue

        column, operator = parse_condition_key(key)
        like = operator == "LIKE"
        if isinstance(value, (list, tuple)):
            options = [
                f"{column} {operator} {_render_condition_value(key, item, like, escape)}" for item in value
            ]
            # An empty option list matches no rows.
            parts.append(f"( {' OR '.join(options)} )" if options else MATCH_NOTHING)
        else:
            parts.append(f"{column} {operator} {_render_condition_value(key, value, like, escape)}")

    if not parts:
        return ""
    joiner = " OR " if conjunction == "OR" else " AND "
    clause = joiner.join(parts)
    return f"WHERE {clause}" if add_label else clause


def _render_condition_value(key: str, value: Any, like: bool, escape: Escaper) -> str:
    if not is_scalar(value):
        raise ValueShapeError(
            f"Where value for '{key}' must be one of str, int or float, got {type(value).__name__}."
        )
    return sanitize_value(value, like=like, escape=escape)


def build_join(join: Mapping[str, Any] | None) -> str:
    """Render INNER JOINs; right-hand sides are column references and stay verbatim."""
    if not join:
        return ""
    joins: list[str] = []
    for table, conditions in join.items():
        if not isinstance(conditions, Mapping):
            continue
        ons = [f"{sanitize_identifier(left)}={right}" for left, right in conditions.items()]
        if ons:
            joins.append(f"INNER JOIN {sanitize_identifier(table)} ON {' AND '.join(ons)}")
    return " ".join(joins)


def build_group(group: Sequence[str] | None) -> str:
    if not group:
        return ""
    return "GROUP BY " + ", ".join(sanitize_identifier(column) for column in group)


def build_order(order: Mapping[str, str] | None) -> str:
    if not order:
        return ""
    orders = [
        f"{sanitize_identifier(column)} {'ASC' if direction == 'ASC' else 'DESC'}"
        for column, direction in order.items()
    ]
    return "ORDER BY " + ", ".join(orders)


def build_limit(limit: Limit) -> str:
    """Render ``LIMIT n`` or ``LIMIT offset, count`` from an int or 1-2 item sequence."""
    if not limit or isinstance(limit, bool):
        return ""
    if isinstance(limit, int):
        return f"LIMIT {limit}"
    if isinstance(limit, (str, bytes)) or not isinstance(limit, Sequence):
        return ""
    values: list[int] = []
    for item in list(limit)[:2]:
        number = _as_int(item)
        if number is None:
            break
        values.append(number)
    if not values:
        return ""
    return "LIMIT " + ", ".join(str(value) for value in values)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def build_select(spec: QuerySpec, *, escape: Escaper = escape_string) -> str:
    parts = [
        f"SELECT {build_columns(spec.columns)} FROM {sanitize_identifier(spec.table)}",
        build_join(spec.joins),
        build_where(spec.where, escape=escape),
        build_group(spec.group_by),
        build_order(spec.order_by),
        build_limit(spec.limit),
    ]
    return " ".join(part for part in parts if part)


def build_count(
    table: str,
    where: Where | None = None,
    *,
    join: Mapping[str, Any] | None = None,
    escape: Escaper = escape_string,
) -> str:
    parts = [
        f"SELECT COUNT(*) FROM {sanitize_identifier(table)}",
        build_join(join),
        build_where(where, escape=escape),
    ]
    return " ".join(part for part in parts if part)
