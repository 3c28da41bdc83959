"""toolforge — Exception hierarchy.

All exceptions raised by the package inherit from ToolforgeError so that
request handlers can catch the full family with a single except clause.

Hierarchy:
    ToolforgeError
    ├── QueryValidationError
    │   └── UnsafeQueryError
    ├── DataSourceError
    │   ├── DataSourceConnectionError
    │   ├── QueryExecutionError
    │   └── QueryTimeoutError
    └── CredentialError
        ├── CredentialIntegrityError
        └── CredentialConfigurationError

Messages and ``context`` never carry parameter values or credentials.
"""

from __future__ import annotations

from typing import Any


class ToolforgeError(Exception):
    """Base exception for all toolforge errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Compilation layer
# ---------------------------------------------------------------------------


class QueryValidationError(ToolforgeError):
    """The operation descriptor cannot be compiled (raised before any I/O)."""


class UnsafeQueryError(QueryValidationError):
    """A raw SQL query resource contains a disallowed statement."""

    def __init__(self, message: str = "SQL contains disallowed operations") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Data source layer
# ---------------------------------------------------------------------------


class DataSourceError(ToolforgeError):
    """Base for failures talking to a connected database."""


class DataSourceConnectionError(DataSourceError):
    """The connection could not be established (network, auth, timeout)."""


class QueryExecutionError(DataSourceError):
    """The remote engine rejected the statement."""

    def __init__(
        self,
        message: str,
        sqlstate: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(context or {})
        if sqlstate is not None:
            merged["sqlstate"] = sqlstate
        super().__init__(message, context=merged)
        self.sqlstate = sqlstate


class QueryTimeoutError(DataSourceError):
    """The statement exceeded its execution timeout."""

    def __init__(
        self,
        timeout_seconds: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Query timed out after {timeout_seconds:g}s",
            context={**(context or {}), "timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


# ---------------------------------------------------------------------------
# Credential layer
# ---------------------------------------------------------------------------


class CredentialError(ToolforgeError):
    """Base for stored-credential errors."""


class CredentialIntegrityError(CredentialError):
    """Stored ciphertext is malformed, tampered with, or sealed with another key."""


class CredentialConfigurationError(CredentialError):
    """The encryption key is missing or malformed."""
