"""Table resources — CRUD over a configured table through the executor.

The resource config narrows what a page may touch: only configured columns
are selected or filtered on, only editable columns are written, and rows
are addressed by their full primary key.
"""

from __future__ import annotations

from typing import Any

from toolforge.datasources.executor import (
    execute_delete,
    execute_insert,
    execute_select,
    execute_update,
)
from toolforge.datasources.models import (
    ConnectionDescriptor,
    DeleteOperation,
    InsertOperation,
    InsertResult,
    MutationResult,
    OrderBy,
    SelectOperation,
    SelectResult,
    UpdateOperation,
)
from toolforge.exceptions import QueryValidationError
from toolforge.logging import get_logger
from toolforge.resources.models import TableResourceConfig

log = get_logger(__name__)


class TableResource:
    """One table resource bound to the data source it reads from."""

    def __init__(
        self, config: TableResourceConfig, descriptor: ConnectionDescriptor
    ) -> None:
        self.config = config
        self._descriptor = descriptor

    def __repr__(self) -> str:
        return f"TableResource(table={self.config.table_name!r})"

    @property
    def table_name(self) -> str:
        return self.config.table_name

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _error(self, message: str, **context: Any) -> QueryValidationError:
        return QueryValidationError(message, context={"table": self.table_name, **context})

    def _check_known(self, columns: list[str], purpose: str) -> None:
        for name in columns:
            if name not in self.config.columns:
                raise self._error(
                    f"Column '{name}' is not part of this resource ({purpose})",
                    column=name,
                )

    def _check_writable(self, data: dict[str, Any]) -> None:
        if not data:
            raise self._error("No data provided")
        self._check_known(list(data), "write")
        for name in data:
            if not self.config.is_editable(name):
                raise self._error(f"Column '{name}' is not editable", column=name)

    def _check_key(self, key: dict[str, Any]) -> None:
        primary_key = self.config.primary_key
        if not primary_key:
            raise self._error("Resource has no primary key; rows cannot be addressed")
        if set(key) != set(primary_key):
            raise self._error(
                f"Row key must name exactly the primary key columns {primary_key}",
                key_columns=sorted(key),
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list_rows(
        self,
        where: dict[str, Any] | None = None,
        order_by: list[OrderBy | dict[str, Any]] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> SelectResult:
        op = SelectOperation(
            table=self.table_name,
            columns=list(self.config.columns),
            where=where or {},
            order_by=order_by or [],
            limit=limit,
            offset=offset,
        )
        self._check_known(list(op.where), "filter")
        self._check_known([o.column for o in op.order_by], "order")
        return await execute_select(self._descriptor, op)

    async def create_row(self, data: dict[str, Any]) -> InsertResult:
        self._check_writable(data)
        result = await execute_insert(
            self._descriptor, InsertOperation(table=self.table_name, data=data)
        )
        log.info("row_created", table=self.table_name)
        return result

    async def update_row(
        self, key: dict[str, Any], data: dict[str, Any]
    ) -> MutationResult:
        self._check_key(key)
        self._check_writable(data)
        result = await execute_update(
            self._descriptor,
            UpdateOperation(table=self.table_name, data=data, where=key),
        )
        log.info("rows_updated", table=self.table_name, row_count=result.row_count)
        return result

    async def delete_row(self, key: dict[str, Any]) -> MutationResult:
        self._check_key(key)
        result = await execute_delete(
            self._descriptor, DeleteOperation(table=self.table_name, where=key)
        )
        log.info("rows_deleted", table=self.table_name, row_count=result.row_count)
        return result
