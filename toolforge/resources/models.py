"""Configuration models for resources bound to a data source.

A *table* resource exposes CRUD over one table with a fixed column set; a
*query* resource wraps administrator-written read-only SQL with typed
parameters.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from toolforge.datasources.models import TableDescriptor
from toolforge.resources.sql_safety import validate_sql_safety


class ColumnDisplay(BaseModel):
    """Per-column display settings of a table resource."""

    label: str | None = None
    hidden: bool = False
    editable: bool = True


class TableResourceConfig(BaseModel):
    table_name: str = Field(min_length=1)
    columns: list[str] = Field(
        min_length=1,
        description="Columns exposed by the resource, in display order.",
    )
    primary_key: list[str] = Field(default_factory=list)
    column_config: dict[str, ColumnDisplay] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_column_references(self) -> TableResourceConfig:
        known = set(self.columns)
        missing_key = [c for c in self.primary_key if c not in known]
        if missing_key:
            raise ValueError(f"primary_key columns not in columns: {missing_key}")
        unknown = [c for c in self.column_config if c not in known]
        if unknown:
            raise ValueError(f"column_config names unknown columns: {unknown}")
        return self

    def is_editable(self, column: str) -> bool:
        if column not in self.columns:
            return False
        display = self.column_config.get(column)
        return display is None or display.editable

    def label_for(self, column: str) -> str:
        display = self.column_config.get(column)
        if display is not None and display.label:
            return display.label
        return column

    def visible_columns(self) -> list[str]:
        return [
            c
            for c in self.columns
            if c not in self.column_config or not self.column_config[c].hidden
        ]


ParameterType = Literal["string", "number", "boolean", "date"]


class QueryParameter(BaseModel):
    name: str = Field(min_length=1)
    type: ParameterType
    default_value: str | int | float | bool | None = None


class QueryResourceConfig(BaseModel):
    """Read-only custom SQL. Rejected at construction if it fails the SQL guard."""

    sql: str = Field(min_length=1)
    parameters: list[QueryParameter] = Field(default_factory=list)

    @field_validator("sql")
    @classmethod
    def check_sql_safety(cls, v: str) -> str:
        validate_sql_safety(v)
        return v


def table_config_from_descriptor(table: TableDescriptor) -> TableResourceConfig:
    """Default table resource for an introspected table.

    Every column is exposed. Key columns the database fills in itself
    (serial/identity/default-generated) are not editable.
    """
    column_config = {
        col.name: ColumnDisplay(editable=False)
        for col in table.columns
        if col.name in table.primary_key and col.has_default
    }
    return TableResourceConfig(
        table_name=table.name,
        columns=[col.name for col in table.columns],
        primary_key=list(table.primary_key),
        column_config=column_config,
    )
