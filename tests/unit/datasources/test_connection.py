"""Unit tests — call-scoped connections, driver error mapping, connection probe."""

from __future__ import annotations

import ssl
from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from toolforge.config import Settings, override_settings
from toolforge.datasources.connection import (
    CONNECT_TIMEOUT_SECONDS,
    QUERY_TIMEOUT_SECONDS,
    open_connection,
    probe_connection,
)
from toolforge.datasources.models import ConnectionDescriptor
from toolforge.exceptions import (
    DataSourceConnectionError,
    QueryExecutionError,
    QueryTimeoutError,
)


class _ArgumentEncodingError(asyncpg.InterfaceError, ValueError):
    """Shape of asyncpg's client-side argument errors."""


@pytest.mark.unit
class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_arguments(self, descriptor, mock_connect) -> None:
        async with open_connection(descriptor):
            pass

        kwargs = mock_connect.call_args.kwargs
        assert kwargs["host"] == "db.internal"
        assert kwargs["port"] == 5432
        assert kwargs["user"] == "tool_user"
        assert kwargs["password"] == "s3cret"
        assert kwargs["database"] == "app"
        assert kwargs["ssl"] is False
        assert kwargs["timeout"] == CONNECT_TIMEOUT_SECONDS
        assert kwargs["command_timeout"] == QUERY_TIMEOUT_SECONDS
        assert kwargs["server_settings"] == {"application_name": "toolforge"}

    @pytest.mark.asyncio
    async def test_tls_without_verification_by_default(self, mock_connect) -> None:
        descriptor = ConnectionDescriptor(
            host="h", database="d", username="u", password="p", ssl=True
        )
        async with open_connection(descriptor):
            pass

        context = mock_connect.call_args.kwargs["ssl"]
        assert isinstance(context, ssl.SSLContext)
        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    @pytest.mark.asyncio
    async def test_tls_verification_enabled_by_settings(self, mock_connect) -> None:
        override_settings(Settings(datasources={"verify_tls": True}))
        descriptor = ConnectionDescriptor(
            host="h", database="d", username="u", password="p", use_tls=True
        )
        async with open_connection(descriptor):
            pass

        context = mock_connect.call_args.kwargs["ssl"]
        assert context.verify_mode == ssl.CERT_REQUIRED

    @pytest.mark.asyncio
    async def test_connect_timeout(self, descriptor) -> None:
        with patch(
            "toolforge.datasources.connection.asyncpg.connect",
            new=AsyncMock(side_effect=TimeoutError()),
        ):
            with pytest.raises(DataSourceConnectionError, match="timed out after 10s"):
                async with open_connection(descriptor):
                    pass

    @pytest.mark.asyncio
    async def test_auth_rejected(self, descriptor) -> None:
        error = asyncpg.InvalidPasswordError('password authentication failed for user "tool_user"')
        with patch(
            "toolforge.datasources.connection.asyncpg.connect",
            new=AsyncMock(side_effect=error),
        ):
            with pytest.raises(DataSourceConnectionError) as exc_info:
                async with open_connection(descriptor):
                    pass
        assert exc_info.value.context["sqlstate"] == "28P01"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_connection_refused(self, descriptor) -> None:
        with patch(
            "toolforge.datasources.connection.asyncpg.connect",
            new=AsyncMock(side_effect=ConnectionRefusedError("Connection refused")),
        ):
            with pytest.raises(DataSourceConnectionError, match="Connection refused"):
                async with open_connection(descriptor):
                    pass


@pytest.mark.unit
class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_server_error_becomes_execution_error(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        fake_conn.fetch.side_effect = asyncpg.UndefinedTableError(
            'relation "nope" does not exist'
        )
        with pytest.raises(QueryExecutionError) as exc_info:
            async with open_connection(descriptor) as conn:
                await conn.fetch("SELECT 1")
        assert exc_info.value.sqlstate == "42P01"
        assert "does not exist" in exc_info.value.message
        fake_conn.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_statement_cancelled_becomes_timeout(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        fake_conn.fetch.side_effect = asyncpg.QueryCanceledError(
            "canceling statement due to statement timeout"
        )
        with pytest.raises(QueryTimeoutError) as exc_info:
            async with open_connection(descriptor) as conn:
                await conn.fetch("SELECT pg_sleep(60)")
        assert exc_info.value.timeout_seconds == QUERY_TIMEOUT_SECONDS

    @pytest.mark.asyncio
    async def test_client_timeout_becomes_timeout(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        fake_conn.fetch.side_effect = TimeoutError()
        with pytest.raises(QueryTimeoutError, match="30s"):
            async with open_connection(descriptor) as conn:
                await conn.fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_lost_connection(self, descriptor, fake_conn, mock_connect) -> None:
        fake_conn.fetch.side_effect = asyncpg.PostgresConnectionError("terminated")
        with pytest.raises(DataSourceConnectionError, match="Connection lost"):
            async with open_connection(descriptor) as conn:
                await conn.fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_argument_error_drops_value(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        fake_conn.fetch.side_effect = _ArgumentEncodingError(
            "invalid input for query argument $1: 'hunter2' (expected int)"
        )
        with pytest.raises(QueryExecutionError) as exc_info:
            async with open_connection(descriptor) as conn:
                await conn.fetch("SELECT $1::int", "hunter2")
        assert exc_info.value.message == "invalid input for query argument $1"
        assert "hunter2" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_driver_errors_propagate(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        with pytest.raises(KeyError):
            async with open_connection(descriptor):
                raise KeyError("x")
        fake_conn.close.assert_awaited_once()


@pytest.mark.unit
class TestRelease:
    @pytest.mark.asyncio
    async def test_closed_on_success(self, descriptor, fake_conn, mock_connect) -> None:
        async with open_connection(descriptor):
            pass
        fake_conn.close.assert_awaited_once()
        fake_conn.terminate.assert_not_called()

    @pytest.mark.asyncio
    async def test_terminated_when_close_fails(
        self, descriptor, fake_conn, mock_connect
    ) -> None:
        fake_conn.close.side_effect = ConnectionResetError()
        async with open_connection(descriptor):
            pass
        fake_conn.terminate.assert_called_once()


@pytest.mark.unit
class TestProbeConnection:
    @pytest.mark.asyncio
    async def test_success(self, descriptor, fake_conn, mock_connect) -> None:
        result = await probe_connection(descriptor)
        assert result.success is True
        assert result.error is None
        assert result.latency_ms is not None and result.latency_ms >= 0
        fake_conn.fetchval.assert_awaited_once_with("SELECT NOW()")
        assert mock_connect.call_args.kwargs["command_timeout"] == 5.0

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self, descriptor) -> None:
        with patch(
            "toolforge.datasources.connection.asyncpg.connect",
            new=AsyncMock(side_effect=OSError("Name or service not known")),
        ):
            result = await probe_connection(descriptor)
        assert result.success is False
        assert result.latency_ms is None
        assert result.error == "Name or service not known"

    @pytest.mark.asyncio
    async def test_query_failure_closes_connection(
        self, descriptor, fake_conn: MagicMock, mock_connect
    ) -> None:
        fake_conn.fetchval.side_effect = asyncpg.QueryCanceledError("timeout")
        result = await probe_connection(descriptor)
        assert result.success is False
        assert result.error == "Query timed out after 5s"
        fake_conn.close.assert_awaited_once()
