"""Query executor — compile, run and shape one operation per call.

Each call compiles first (so validation errors surface before any network
I/O), then opens its own connection, runs the single statement as an
implicit transaction, and closes the connection on every exit path.

Parameter values are never logged.
"""

from __future__ import annotations

import time
from typing import Any

from toolforge.datasources.compiler import (
    build_delete_query,
    build_insert_query,
    build_select_query,
    build_update_query,
)
from toolforge.datasources.connection import open_connection
from toolforge.datasources.models import (
    CompiledQuery,
    ConnectionDescriptor,
    DeleteOperation,
    InsertOperation,
    InsertResult,
    MutationResult,
    Operation,
    SelectOperation,
    SelectResult,
    UpdateOperation,
)
from toolforge.exceptions import QueryExecutionError, QueryValidationError
from toolforge.logging import get_logger

log = get_logger(__name__)


async def _fetch(
    descriptor: ConnectionDescriptor,
    compiled: CompiledQuery,
    *,
    operation: str,
    table: str,
) -> list[dict[str, Any]]:
    start = time.monotonic()
    async with open_connection(descriptor) as conn:
        records = await conn.fetch(compiled.text, *compiled.parameters)
    rows = [dict(record) for record in records]
    log.debug(
        "query_executed",
        operation=operation,
        table=table,
        row_count=len(rows),
        elapsed_ms=round((time.monotonic() - start) * 1000, 2),
    )
    return rows


async def execute_select(
    descriptor: ConnectionDescriptor, op: SelectOperation
) -> SelectResult:
    compiled = build_select_query(op)
    rows = await _fetch(descriptor, compiled, operation="select", table=op.table)
    return SelectResult(rows=rows, row_count=len(rows))


async def execute_insert(
    descriptor: ConnectionDescriptor, op: InsertOperation
) -> InsertResult:
    """Insert one row and return it as stored (defaults and generated keys included)."""
    compiled = build_insert_query(op)
    rows = await _fetch(descriptor, compiled, operation="insert", table=op.table)
    if not rows:
        # A BEFORE trigger returning NULL silently skips the row.
        raise QueryExecutionError(
            "Insert did not return a row", context={"table": op.table}
        )
    return InsertResult(row=rows[0])


async def execute_update(
    descriptor: ConnectionDescriptor, op: UpdateOperation
) -> MutationResult:
    compiled = build_update_query(op)
    rows = await _fetch(descriptor, compiled, operation="update", table=op.table)
    return MutationResult(rows=rows, row_count=len(rows))


async def execute_delete(
    descriptor: ConnectionDescriptor, op: DeleteOperation
) -> MutationResult:
    compiled = build_delete_query(op)
    rows = await _fetch(descriptor, compiled, operation="delete", table=op.table)
    return MutationResult(rows=rows, row_count=len(rows))


async def execute_operation(
    descriptor: ConnectionDescriptor, op: Operation
) -> SelectResult | InsertResult | MutationResult:
    """Run any operation descriptor."""
    if isinstance(op, SelectOperation):
        return await execute_select(descriptor, op)
    if isinstance(op, InsertOperation):
        return await execute_insert(descriptor, op)
    if isinstance(op, UpdateOperation):
        return await execute_update(descriptor, op)
    if isinstance(op, DeleteOperation):
        return await execute_delete(descriptor, op)
    raise QueryValidationError(f"Unsupported operation: {type(op).__name__}")
