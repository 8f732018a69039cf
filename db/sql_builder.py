"""
db/sql_builder.py
-----------------
String assembly for the statements the facade issues.
Every helper returns SQL text with ``%s`` placeholders, plus the values
to bind where there are any. Identifiers are double-quoted; values are
never interpolated into the text.
"""

import re
from typing import Any, Iterable, Sequence

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_*][A-Za-z0-9_$]*)*$")
_DIRECTIONS = ("ASC", "DESC")


def quote_identifier(name: str) -> str:
    """
    Quote a (possibly dotted) identifier: ``users.id`` -> ``"users"."id"``.
    A bare ``*`` part is left unquoted.
    """
    parts = []
    for part in name.split("."):
        if part == "*":
            parts.append(part)
        else:
            parts.append('"' + part.replace('"', '""') + '"')
    return ".".join(parts)


def _split(columns: str | Sequence[str]) -> list[str]:
    """Split on top-level commas so ``COALESCE(a, b)`` stays one item."""
    if not isinstance(columns, str):
        return [item.strip() for item in columns if item and item.strip()]
    items, depth, current = [], 0, ""
    for char in columns:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            items.append(current)
            current = ""
        else:
            current += char
    items.append(current)
    return [item.strip() for item in items if item.strip()]


def format_columns(columns: str | Sequence[str] | None) -> str:
    """
    Render a select list.

    Plain and dotted identifiers are quoted after any backticks or double
    quotes are stripped. Expressions such as ``COUNT(*) AS total`` pass
    through verbatim. ``*`` and empty input render as ``*``.
    """
    if not columns or columns == "*":
        return "*"
    rendered = []
    for column in _split(columns):
        bare = column.replace("`", "").replace('"', "")
        if _PLAIN_IDENTIFIER.match(bare):
            rendered.append(quote_identifier(bare))
        else:
            rendered.append(column)
    return ", ".join(rendered)


def column_list(keys: Iterable[str]) -> str:
    """``a, b`` -> ``"a", "b"`` for INSERT column lists."""
    return ", ".join(quote_identifier(key) for key in keys)


def placeholders(count: int) -> str:
    return ", ".join(["%s"] * count)


def assignments(keys: Iterable[str]) -> str:
    """``"a" = %s, "b" = %s`` for UPDATE ... SET."""
    return ", ".join(f"{quote_identifier(key)} = %s" for key in keys)


def where_clause(conditions: dict | None, operator: str = "=") -> tuple[str, list]:
    """
    Build a WHERE clause joining every condition with AND.

    Args:
        conditions: column -> value. A None value renders ``IS NULL`` and
            binds nothing (only for the ``=`` operator).
        operator: Comparison operator placed between column and placeholder.

    Returns:
        (sql, values); sql is empty and values is [] when there are no
        conditions.
    """
    if not conditions:
        return "", []
    parts: list[str] = []
    values: list[Any] = []
    for column, value in conditions.items():
        if value is None and operator == "=":
            parts.append(f"{quote_identifier(column)} IS NULL")
            continue
        parts.append(f"{quote_identifier(column)} {operator} %s")
        values.append(value)
    return " WHERE " + " AND ".join(parts), values


def order_clause(order_by: str | Sequence[str] | None) -> str:
    """
    ``"name"``, ``"name DESC"``, ``"a, b DESC"`` or a list of those.

    Plain and dotted column names are quoted. Terms containing parentheses,
    such as ``COUNT(*) DESC`` or ``LOWER(name)``, are expressions and pass
    through verbatim apart from normalizing a trailing direction.

    Raises:
        ValueError: If a column term has a direction other than ASC/DESC.
    """
    if not order_by:
        return ""
    terms = []
    for item in _split(order_by):
        if "(" in item:
            terms.append(_order_expression(item))
            continue
        pieces = item.split()
        column = pieces[0].replace("`", "").replace('"', "")
        if not _PLAIN_IDENTIFIER.match(column):
            raise ValueError(f"Invalid ORDER BY term: {item!r}")
        if len(pieces) == 1:
            terms.append(quote_identifier(column))
            continue
        direction = pieces[1].upper()
        if len(pieces) > 2 or direction not in _DIRECTIONS:
            raise ValueError(f"Invalid ORDER BY term: {item!r}")
        terms.append(f"{quote_identifier(column)} {direction}")
    return " ORDER BY " + ", ".join(terms)


def _order_expression(item: str) -> str:
    head, _, tail = item.rpartition(" ")
    if head and tail.upper() in _DIRECTIONS:
        return f"{head.rstrip()} {tail.upper()}"
    return item


def group_clause(group_by: str | Sequence[str] | None) -> str:
    if not group_by:
        return ""
    return " GROUP BY " + format_columns(group_by)


def limit_clause(limit: int | None, offset: int | None) -> tuple[str, list]:
    """LIMIT/OFFSET with bound values; OFFSET only applies alongside LIMIT."""
    if not limit:
        return "", []
    if offset:
        return " LIMIT %s OFFSET %s", [limit, offset]
    return " LIMIT %s", [limit]


def build_select(
    table: str,
    columns: str | Sequence[str] = "*",
    where: dict | None = None,
    limit: int | None = None,
    offset: int | None = None,
    order_by: str | Sequence[str] | None = None,
    group_by: str | Sequence[str] | None = None,
    joins: Sequence[str] | None = None,
    operator: str = "=",
) -> tuple[str, list]:
    """Assemble a full SELECT statement and its parameters."""
    sql = f"SELECT {format_columns(columns)} FROM {quote_identifier(table)}"
    if joins:
        sql += " " + " ".join(joins)
    if operator == "LIKE":
        where_sql, params = _like_clause(where)
    else:
        where_sql, params = where_clause(where, operator)
    sql += where_sql
    sql += group_clause(group_by)
    sql += order_clause(order_by)
    limit_sql, limit_params = limit_clause(limit, offset)
    return sql + limit_sql, params + limit_params


def _like_clause(conditions: dict | None) -> tuple[str, list]:
    if not conditions:
        return "", []
    parts: list[str] = []
    values: list[str] = []
    for column, value in conditions.items():
        if value is None:
            parts.append(f"{quote_identifier(column)} IS NULL")
            continue
        parts.append(f"CAST({quote_identifier(column)} AS TEXT) LIKE %s")
        values.append(f"%{value}%")
    return " WHERE " + " AND ".join(parts), values
