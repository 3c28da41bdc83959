"""Operation descriptor → parameterized PostgreSQL compiler.

Pure functions, no I/O. Produces a :class:`CompiledQuery` whose text holds
only quoted identifiers, keywords and ``$n`` placeholders; every caller
supplied value travels in ``parameters``.

Security:
  - identifiers are always double-quoted with embedded quotes doubled, so a
    table or column name can never terminate its own quoting;
  - values are bound parameters, never concatenated into the text;
  - UPDATE and DELETE refuse to compile without a WHERE clause;
  - SELECT is always capped at :data:`MAX_ROWS` rows.

Example::

    build_select_query(SelectOperation(table="users", columns=["id", "name"], where={"id": 1}))
    # CompiledQuery(text='SELECT "id", "name" FROM "users" WHERE "id" = $1 LIMIT 1000',
    #               parameters=[1])
"""

from __future__ import annotations

from typing import Any

from toolforge.datasources.models import (
    CompiledQuery,
    DeleteOperation,
    InsertOperation,
    Operation,
    OrderBy,
    SelectOperation,
    UpdateOperation,
)
from toolforge.exceptions import QueryValidationError

# Hard cap on rows returned by a single SELECT, whatever the caller asks for.
MAX_ROWS = 1000

_WILDCARD = "*"


def quote_identifier(identifier: str) -> str:
    """Quote a table or column name for safe use in SQL text."""
    if not identifier:
        raise QueryValidationError("Identifier must not be empty")
    if "\x00" in identifier:
        raise QueryValidationError("Identifier must not contain NUL characters")
    return '"' + identifier.replace('"', '""') + '"'


# ---------------------------------------------------------------------------
# Clause builders
# ---------------------------------------------------------------------------


def _build_conditions(
    where: dict[str, Any], start_index: int
) -> tuple[list[str], list[Any]]:
    """Equality conditions for *where*, numbering placeholders from *start_index*.

    A ``None`` value compiles to ``IS NULL`` and consumes no placeholder.
    """
    conditions: list[str] = []
    params: list[Any] = []
    index = start_index

    for column, value in where.items():
        if value is None:
            conditions.append(f"{quote_identifier(column)} IS NULL")
        else:
            conditions.append(f"{quote_identifier(column)} = ${index}")
            params.append(value)
            index += 1

    return conditions, params


def _build_column_list(columns: list[str]) -> str:
    if columns == [_WILDCARD]:
        return _WILDCARD
    if not columns:
        raise QueryValidationError("At least one column is required for select")
    return ", ".join(quote_identifier(c) for c in columns)


def _build_order_by(order_by: list[OrderBy]) -> str:
    return ", ".join(f"{quote_identifier(o.column)} {o.direction}" for o in order_by)


# ---------------------------------------------------------------------------
# Statement builders
# ---------------------------------------------------------------------------


def build_select_query(op: SelectOperation) -> CompiledQuery:
    """``SELECT <cols> FROM <t> [WHERE ...] [ORDER BY ...] LIMIT n [OFFSET m]``."""
    sql = f"SELECT {_build_column_list(op.columns)} FROM {quote_identifier(op.table)}"

    conditions, params = _build_conditions(op.where, 1)
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)

    if op.order_by:
        sql += " ORDER BY " + _build_order_by(op.order_by)

    limit = min(op.limit if op.limit is not None else MAX_ROWS, MAX_ROWS)
    sql += f" LIMIT {int(limit)}"

    # Literal, not a placeholder: validated as a non-negative int upstream.
    if op.offset is not None:
        sql += f" OFFSET {int(op.offset)}"

    return CompiledQuery(text=sql, parameters=tuple(params))


def build_insert_query(op: InsertOperation) -> CompiledQuery:
    """``INSERT INTO <t> (<cols>) VALUES ($1, ...) RETURNING *``."""
    if not op.data:
        raise QueryValidationError(
            "No data provided for insert", context={"table": op.table}
        )

    columns = ", ".join(quote_identifier(c) for c in op.data)
    placeholders = ", ".join(f"${i}" for i in range(1, len(op.data) + 1))
    params = list(op.data.values())

    sql = (
        f"INSERT INTO {quote_identifier(op.table)} ({columns}) "
        f"VALUES ({placeholders}) RETURNING *"
    )
    return CompiledQuery(text=sql, parameters=tuple(params))


def build_update_query(op: UpdateOperation) -> CompiledQuery:
    """``UPDATE <t> SET <c> = $1, ... WHERE ... RETURNING *``.

    SET placeholders are numbered first; WHERE placeholders continue after them.
    """
    if not op.data:
        raise QueryValidationError(
            "No data provided for update", context={"table": op.table}
        )
    if not op.where:
        raise QueryValidationError(
            "WHERE clause required for update", context={"table": op.table}
        )

    assignments = [
        f"{quote_identifier(column)} = ${i}"
        for i, column in enumerate(op.data, start=1)
    ]
    params = list(op.data.values())

    conditions, where_params = _build_conditions(op.where, len(params) + 1)
    params.extend(where_params)

    sql = (
        f"UPDATE {quote_identifier(op.table)} SET {', '.join(assignments)} "
        f"WHERE {' AND '.join(conditions)} RETURNING *"
    )
    return CompiledQuery(text=sql, parameters=tuple(params))


def build_delete_query(op: DeleteOperation) -> CompiledQuery:
    """``DELETE FROM <t> WHERE ... RETURNING *``."""
    if not op.where:
        raise QueryValidationError(
            "WHERE clause required for delete", context={"table": op.table}
        )

    conditions, params = _build_conditions(op.where, 1)
    sql = (
        f"DELETE FROM {quote_identifier(op.table)} "
        f"WHERE {' AND '.join(conditions)} RETURNING *"
    )
    return CompiledQuery(text=sql, parameters=tuple(params))


_BUILDERS = {
    SelectOperation: build_select_query,
    InsertOperation: build_insert_query,
    UpdateOperation: build_update_query,
    DeleteOperation: build_delete_query,
}


def compile_operation(op: Operation) -> CompiledQuery:
    """Compile any operation descriptor."""
    builder = _BUILDERS.get(type(op))
    if builder is None:
        raise QueryValidationError(f"Unsupported operation: {type(op).__name__}")
    return builder(op)  # type: ignore[operator]
