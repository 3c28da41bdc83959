"""Schema introspection via the PostgreSQL catalogs.

Discovers the base tables of the ``public`` schema with their columns
(name/declared type/nullable/default) and primary keys, plus a cheap
row-count estimate per table. Read-only; each call opens and closes its own
connection. A snapshot is complete or the call raises; it is never partial.
"""

from __future__ import annotations

from collections import defaultdict

from toolforge.datasources.compiler import quote_identifier
from toolforge.datasources.connection import open_connection
from toolforge.datasources.models import (
    ColumnDescriptor,
    ConnectionDescriptor,
    SchemaSnapshot,
    TableDescriptor,
)
from toolforge.logging import get_logger

log = get_logger(__name__)

SCHEMA_NAME = "public"

# Estimates above this are returned as-is; below it an exact COUNT(*) is cheap enough.
EXACT_COUNT_THRESHOLD = 10_000
ROW_COUNT_TIMEOUT_SECONDS = 5.0

# Reported by information_schema for enums/domains and arrays; udt_name is more useful.
_INDIRECT_TYPES = frozenset({"USER-DEFINED", "ARRAY"})

_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
      AND table_type = 'BASE TABLE'
      AND left(table_name, 3) <> 'pg_'
    ORDER BY table_name
"""

_COLUMNS_SQL = """
    SELECT table_name, column_name, data_type, udt_name, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = $1
    ORDER BY table_name, ordinal_position
"""

_PRIMARY_KEYS_SQL = """
    SELECT tc.table_name, kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = $1
    ORDER BY tc.table_name, kcu.ordinal_position
"""

_ESTIMATE_SQL = """
    SELECT c.reltuples::bigint AS estimate
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = $1
      AND c.relname = $2
"""


def _declared_type(data_type: str, udt_name: str | None) -> str:
    if data_type in _INDIRECT_TYPES and udt_name:
        return udt_name
    return data_type


async def discover_schema(descriptor: ConnectionDescriptor) -> SchemaSnapshot:
    """Introspect every base table of the public schema, ordered by name."""
    async with open_connection(descriptor) as conn:
        table_rows = await conn.fetch(_TABLES_SQL, SCHEMA_NAME)
        column_rows = await conn.fetch(_COLUMNS_SQL, SCHEMA_NAME)
        pk_rows = await conn.fetch(_PRIMARY_KEYS_SQL, SCHEMA_NAME)

    columns: dict[str, list[ColumnDescriptor]] = defaultdict(list)
    for row in column_rows:
        columns[row["table_name"]].append(
            ColumnDescriptor(
                name=row["column_name"],
                declared_type=_declared_type(row["data_type"], row["udt_name"]),
                nullable=row["is_nullable"] == "YES",
                has_default=row["column_default"] is not None,
                default_expression=row["column_default"],
            )
        )

    primary_keys: dict[str, list[str]] = defaultdict(list)
    for row in pk_rows:
        primary_keys[row["table_name"]].append(row["column_name"])

    tables = [
        TableDescriptor(
            name=row["table_name"],
            columns=columns.get(row["table_name"], []),
            primary_key=primary_keys.get(row["table_name"], []),
        )
        for row in table_rows
    ]

    log.info("schema_discovered", table_count=len(tables))
    return SchemaSnapshot(tables=tables)


async def estimate_row_count(descriptor: ConnectionDescriptor, table_name: str) -> int:
    """Approximate row count for large tables, exact count for small ones.

    ``reltuples`` is -1 for tables that were never vacuumed or analyzed; those
    fall through to the exact count as well.
    """
    count_sql = (
        f"SELECT COUNT(*) FROM {quote_identifier(SCHEMA_NAME)}.{quote_identifier(table_name)}"
    )

    async with open_connection(
        descriptor, command_timeout=ROW_COUNT_TIMEOUT_SECONDS
    ) as conn:
        estimate = await conn.fetchval(_ESTIMATE_SQL, SCHEMA_NAME, table_name)
        if estimate is not None and estimate > EXACT_COUNT_THRESHOLD:
            return int(estimate)
        count = await conn.fetchval(count_sql)

    return int(count or 0)
