"""Typed models for the data source layer.

Operation descriptors are validated with pydantic at the boundary, then
handed to the compiler. Table and column names are arbitrary strings here;
they are made safe by quoting at compile time, not by validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, field_validator

# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class ConnectionDescriptor(BaseModel):
    """Decrypted credentials for one PostgreSQL data source.

    Lives in memory for the duration of a single operation. ``password`` is a
    ``SecretStr`` so the descriptor can be repr'd or logged by accident
    without leaking it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str = Field(min_length=1)
    port: Annotated[int, Field(ge=1, le=65535)] = 5432
    database: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: SecretStr
    use_tls: bool = Field(default=False, alias="ssl")


# ---------------------------------------------------------------------------
# Schema snapshot
# ---------------------------------------------------------------------------


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    declared_type: str
    nullable: bool
    has_default: bool
    default_expression: str | None = None


class TableDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    primary_key: list[str] = Field(default_factory=list)

    def column(self, name: str) -> ColumnDescriptor | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


class SchemaSnapshot(BaseModel):
    """All user tables of the public schema at introspection time.

    May go stale if the remote schema changes; callers re-introspect.
    """

    model_config = ConfigDict(frozen=True)

    tables: list[TableDescriptor] = Field(default_factory=list)

    def table(self, name: str) -> TableDescriptor | None:
        for tbl in self.tables:
            if tbl.name == name:
                return tbl
        return None

    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]


# ---------------------------------------------------------------------------
# Operation descriptors
# ---------------------------------------------------------------------------


class OrderBy(BaseModel):
    column: str
    direction: Literal["ASC", "DESC"] = "ASC"

    @field_validator("direction", mode="before")
    @classmethod
    def upper_direction(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class SelectOperation(BaseModel):
    kind: Literal["select"] = "select"
    table: str
    columns: list[str] = Field(
        default_factory=lambda: ["*"],
        description='Columns to return, in order. ["*"] selects all columns.',
    )
    where: dict[str, Any] = Field(
        default_factory=dict,
        description="Equality filters; a None value matches NULL.",
    )
    order_by: list[OrderBy] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class InsertOperation(BaseModel):
    kind: Literal["insert"] = "insert"
    table: str
    data: dict[str, Any] = Field(default_factory=dict)


class UpdateOperation(BaseModel):
    kind: Literal["update"] = "update"
    table: str
    data: dict[str, Any] = Field(default_factory=dict)
    where: dict[str, Any] = Field(default_factory=dict)


class DeleteOperation(BaseModel):
    kind: Literal["delete"] = "delete"
    table: str
    where: dict[str, Any] = Field(default_factory=dict)


Operation = Annotated[
    Union[SelectOperation, InsertOperation, UpdateOperation, DeleteOperation],
    Field(discriminator="kind"),
]

_operation_adapter: TypeAdapter[Operation] = TypeAdapter(Operation)


def parse_operation(payload: dict[str, Any]) -> Operation:
    """Validate a raw request payload into the matching operation descriptor."""
    return _operation_adapter.validate_python(payload)


# ---------------------------------------------------------------------------
# Compiled query and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text with positional ``$n`` placeholders and its parameters."""

    text: str
    parameters: tuple[Any, ...] = ()


class SelectResult(BaseModel):
    rows: list[dict[str, Any]]
    row_count: int


class InsertResult(BaseModel):
    row: dict[str, Any]


class MutationResult(BaseModel):
    """Rows returned by UPDATE/DELETE ... RETURNING *."""

    rows: list[dict[str, Any]]
    row_count: int


class ConnectionProbeResult(BaseModel):
    success: bool
    latency_ms: float | None = None
    error: str | None = None
