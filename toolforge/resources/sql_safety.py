"""Guard for administrator-authored raw SQL query resources.

This catches obvious mistakes in the resource editor (schema changes,
privilege changes, unfiltered deletes). It is pattern matching, not a
parser: the actual boundary for query resources is a read-only database
role on the connected data source.
"""

from __future__ import annotations

import re

from toolforge.exceptions import UnsafeQueryError

_DISALLOWED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bDROP\b", re.IGNORECASE),
    re.compile(r"\bTRUNCATE\b", re.IGNORECASE),
    re.compile(r"\bALTER\b", re.IGNORECASE),
    re.compile(r"\bCREATE\b", re.IGNORECASE),
    re.compile(r"\bGRANT\b", re.IGNORECASE),
    re.compile(r"\bREVOKE\b", re.IGNORECASE),
    # DELETE FROM <table> with nothing after it, i.e. no WHERE.
    # Quoted names may contain doubled quotes.
    re.compile(
        r'\bDELETE\s+FROM\s+(?:"(?:[^"]|"")+"|\w+)(?:\.(?:"(?:[^"]|"")+"|\w+))?\s*$',
        re.IGNORECASE,
    ),
)


def find_disallowed_operation(sql: str) -> str | None:
    """Return the offending fragment of *sql*, or None if it passes."""
    statement = sql.strip().rstrip(";").rstrip()
    for pattern in _DISALLOWED_PATTERNS:
        match = pattern.search(statement)
        if match:
            return match.group(0)
    return None


def validate_sql_safety(sql: str) -> None:
    """Raise :class:`UnsafeQueryError` if *sql* contains a disallowed operation."""
    if find_disallowed_operation(sql) is not None:
        raise UnsafeQueryError()
