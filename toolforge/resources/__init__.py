"""Resources — table and query resources built on a data source."""

from toolforge.resources.models import (
    ColumnDisplay,
    QueryParameter,
    QueryResourceConfig,
    TableResourceConfig,
    table_config_from_descriptor,
)
from toolforge.resources.sql_safety import validate_sql_safety
from toolforge.resources.table import TableResource

__all__ = [
    "ColumnDisplay",
    "QueryParameter",
    "QueryResourceConfig",
    "TableResource",
    "TableResourceConfig",
    "table_config_from_descriptor",
    "validate_sql_safety",
]
