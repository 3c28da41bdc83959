"""Shared pytest fixtures for the toolforge test suite."""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolforge.config import Settings, override_settings
from toolforge.datasources.models import ConnectionDescriptor

TEST_KEY = "0123456789abcdef" * 4


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def test_settings() -> Generator[Settings, None, None]:
    settings = Settings(
        credentials={"encryption_key": TEST_KEY},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    yield settings


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------


@pytest.fixture
def descriptor() -> ConnectionDescriptor:
    return ConnectionDescriptor(
        host="db.internal",
        port=5432,
        database="app",
        username="tool_user",
        password="s3cret",
    )


@pytest.fixture
def fake_conn() -> MagicMock:
    """Stand-in for an asyncpg.Connection; records are plain dicts."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=None)
    conn.close = AsyncMock()
    conn.terminate = MagicMock()
    return conn


@pytest.fixture
def mock_connect(fake_conn: MagicMock) -> Generator[AsyncMock, None, None]:
    with patch(
        "toolforge.datasources.connection.asyncpg.connect",
        new=AsyncMock(return_value=fake_conn),
    ) as connect:
        yield connect
