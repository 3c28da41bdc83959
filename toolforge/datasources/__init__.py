"""Data sources — safe dynamic SQL over administrator-connected PostgreSQL databases.

Public API::

    from toolforge.datasources import (
        ConnectionDescriptor, SelectOperation, execute_select, discover_schema,
    )

    descriptor = ConnectionDescriptor(host="db", database="app", username="u", password="p")
    schema = await discover_schema(descriptor)
    result = await execute_select(
        descriptor, SelectOperation(table="users", columns=["id", "email"], limit=50)
    )
"""

from toolforge.datasources.compiler import (
    MAX_ROWS,
    build_delete_query,
    build_insert_query,
    build_select_query,
    build_update_query,
    compile_operation,
    quote_identifier,
)
from toolforge.datasources.connection import open_connection, probe_connection
from toolforge.datasources.executor import (
    execute_delete,
    execute_insert,
    execute_operation,
    execute_select,
    execute_update,
)
from toolforge.datasources.introspector import discover_schema, estimate_row_count
from toolforge.datasources.models import (
    ColumnDescriptor,
    CompiledQuery,
    ConnectionDescriptor,
    ConnectionProbeResult,
    DeleteOperation,
    InsertOperation,
    InsertResult,
    MutationResult,
    Operation,
    OrderBy,
    SchemaSnapshot,
    SelectOperation,
    SelectResult,
    TableDescriptor,
    UpdateOperation,
    parse_operation,
)

__all__ = [
    "MAX_ROWS",
    "ColumnDescriptor",
    "CompiledQuery",
    "ConnectionDescriptor",
    "ConnectionProbeResult",
    "DeleteOperation",
    "InsertOperation",
    "InsertResult",
    "MutationResult",
    "Operation",
    "OrderBy",
    "SchemaSnapshot",
    "SelectOperation",
    "SelectResult",
    "TableDescriptor",
    "UpdateOperation",
    "build_delete_query",
    "build_insert_query",
    "build_select_query",
    "build_update_query",
    "compile_operation",
    "discover_schema",
    "estimate_row_count",
    "execute_delete",
    "execute_insert",
    "execute_operation",
    "execute_select",
    "execute_update",
    "open_connection",
    "parse_operation",
    "probe_connection",
    "quote_identifier",
]
