"""toolforge — Data source layer for internal-tool builders.

Administrators connect PostgreSQL databases, the schema is introspected,
and pages read and write rows through structured operation descriptors
that are compiled into parameterized SQL.

Packages:
    datasources — operation models, SQL compiler, executor, schema introspector
    resources   — table/query resource configuration and table CRUD binding
    security    — encryption of stored data source credentials
"""

__version__ = "0.1.0"

from toolforge.exceptions import ToolforgeError

__all__ = [
    "__version__",
    "ToolforgeError",
]
