"""Data source connections — call-scoped asyncpg connections.

Every operation opens its own connection, uses it exclusively and closes it
before returning, on success and on failure alike. Nothing is pooled or
shared across calls.

Driver exceptions are translated into the toolforge taxonomy here so the
executor and the introspector report failures identically:

    connect timeout, refused, auth/database rejected  → DataSourceConnectionError
    command timeout, statement cancelled              → QueryTimeoutError
    any other server-side error                       → QueryExecutionError

The driver exception is always chained.
"""

from __future__ import annotations

import ssl
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from toolforge.config import get_settings
from toolforge.datasources.models import ConnectionDescriptor, ConnectionProbeResult
from toolforge.exceptions import (
    DataSourceConnectionError,
    DataSourceError,
    QueryExecutionError,
    QueryTimeoutError,
)
from toolforge.logging import get_logger

log = get_logger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0
QUERY_TIMEOUT_SECONDS = 30.0
PROBE_TIMEOUT_SECONDS = 5.0
_CLOSE_TIMEOUT_SECONDS = 5.0


def _ssl_option(descriptor: ConnectionDescriptor) -> ssl.SSLContext | bool:
    if not descriptor.use_tls:
        return False
    context = ssl.create_default_context()
    if not get_settings().datasources.verify_tls:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


async def _connect(
    descriptor: ConnectionDescriptor, command_timeout: float
) -> asyncpg.Connection:
    try:
        return await asyncpg.connect(
            host=descriptor.host,
            port=descriptor.port,
            user=descriptor.username,
            password=descriptor.password.get_secret_value(),
            database=descriptor.database,
            ssl=_ssl_option(descriptor),
            timeout=CONNECT_TIMEOUT_SECONDS,
            command_timeout=command_timeout,
            server_settings={
                "application_name": get_settings().datasources.application_name,
            },
        )
    # TimeoutError is an OSError subclass; keep it first.
    except TimeoutError as exc:
        raise DataSourceConnectionError(
            f"Connection timed out after {CONNECT_TIMEOUT_SECONDS:g}s",
            context={"timeout_seconds": CONNECT_TIMEOUT_SECONDS},
        ) from exc
    except asyncpg.PostgresError as exc:
        raise DataSourceConnectionError(
            str(exc), context={"sqlstate": getattr(exc, "sqlstate", None)}
        ) from exc
    except (OSError, asyncpg.InterfaceError) as exc:
        raise DataSourceConnectionError(str(exc) or type(exc).__name__) from exc


async def _release(conn: asyncpg.Connection) -> None:
    try:
        await conn.close(timeout=_CLOSE_TIMEOUT_SECONDS)
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        log.warning("connection_close_failed", error_type=type(exc).__name__)
        conn.terminate()


def _sanitize_argument_error(exc: Exception) -> str:
    """Drop the offending value from an argument-encoding error.

    asyncpg renders these as ``invalid input for query argument $1: <value> (...)``.
    """
    return str(exc).split(":", 1)[0]


@asynccontextmanager
async def open_connection(
    descriptor: ConnectionDescriptor,
    *,
    command_timeout: float = QUERY_TIMEOUT_SECONDS,
) -> AsyncIterator[asyncpg.Connection]:
    """Open one connection for the duration of the ``async with`` block.

    Errors raised by the driver inside the block are mapped to the toolforge
    taxonomy; the connection is closed before the error reaches the caller.
    """
    conn = await _connect(descriptor, command_timeout)
    try:
        yield conn
    except TimeoutError as exc:
        raise QueryTimeoutError(command_timeout) from exc
    except asyncpg.QueryCanceledError as exc:
        raise QueryTimeoutError(command_timeout) from exc
    except asyncpg.PostgresConnectionError as exc:
        raise DataSourceConnectionError(
            f"Connection lost during query: {exc}", context={"sqlstate": exc.sqlstate}
        ) from exc
    except asyncpg.PostgresError as exc:
        raise QueryExecutionError(str(exc), sqlstate=exc.sqlstate) from exc
    except asyncpg.InterfaceError as exc:
        # Client-side argument encoding errors are InterfaceError + ValueError.
        if isinstance(exc, ValueError):
            raise QueryExecutionError(_sanitize_argument_error(exc)) from exc
        raise QueryExecutionError(str(exc)) from exc
    except OSError as exc:
        raise DataSourceConnectionError(f"Connection lost during query: {exc}") from exc
    finally:
        await _release(conn)


async def probe_connection(descriptor: ConnectionDescriptor) -> ConnectionProbeResult:
    """Check that *descriptor* can connect and answer a trivial query.

    Backs the user-initiated "test connection" flow, so failures are
    reported in the result instead of raised.
    """
    start = time.monotonic()
    try:
        async with open_connection(
            descriptor, command_timeout=PROBE_TIMEOUT_SECONDS
        ) as conn:
            await conn.fetchval("SELECT NOW()")
    except DataSourceError as exc:
        log.info("connection_probe_failed", error_type=type(exc).__name__)
        return ConnectionProbeResult(success=False, error=exc.message)

    latency_ms = round((time.monotonic() - start) * 1000, 2)
    log.info("connection_probe_succeeded", latency_ms=latency_ms)
    return ConnectionProbeResult(success=True, latency_ms=latency_ms)
