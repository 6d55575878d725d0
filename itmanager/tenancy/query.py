"""Tenant-scoped query facade over the remote database client."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, Any

import structlog

from itmanager.models.tables import TableSpec, resolve_table

if TYPE_CHECKING:
    from itmanager.remote.client import RemoteDatabase
    from itmanager.remote.query import QueryBuilder
    from itmanager.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)

Rows = dict[str, Any] | list[dict[str, Any]]


def stamp_tenant(data: Rows, column: str, tenant_id: str) -> Rows:
    """Return a copy of ``data`` with ``column`` set to ``tenant_id`` on every row."""
    if isinstance(data, list):
        return [{**row, column: tenant_id} for row in data]
    return {**data, column: tenant_id}


class TenantScopedQuery:
    """select / insert / update / delete with tenant scoping applied.

    For tenanted tables, reads and mutations get an equality filter on the
    tenant column and inserts are stamped with the tenant id. Global tables
    pass through untouched. The facade only scopes to a tenant: callers must
    add their own row filter before executing an update or delete, or the
    mutation applies to every row the tenant owns.

    Errors from the remote are never caught here.
    """

    def __init__(
        self,
        remote: RemoteDatabase,
        context: TenantContext,
        *,
        tenant_column: str = "client_id",
        guard: Callable[[TenantContext], None] | None = None,
    ) -> None:
        self._remote = remote
        self._context = context
        self._column = tenant_column
        self._guard = guard

    @property
    def context(self) -> TenantContext:
        return self._context

    @property
    def tenant_id(self) -> str:
        return self._context.tenant_id

    @property
    def tenant_column(self) -> str:
        return self._column

    def _bind(self, builder: QueryBuilder) -> QueryBuilder:
        if self._guard is not None:
            builder.after_response(partial(self._guard, self._context))
        return builder

    def _scope(self, spec: TableSpec, builder: QueryBuilder) -> QueryBuilder:
        if spec.tenanted:
            builder.eq(self._column, self._context.tenant_id)
        return self._bind(builder)

    def select(self, table: TableSpec | str, columns: str = "*") -> QueryBuilder:
        spec = resolve_table(table)
        return self._scope(spec, self._remote.table(spec.name).select(columns))

    def insert(self, table: TableSpec | str, data: Rows) -> QueryBuilder:
        spec = resolve_table(table)
        if spec.tenanted:
            data = stamp_tenant(data, self._column, self._context.tenant_id)
        return self._bind(self._remote.table(spec.name).insert(data))

    def update(self, table: TableSpec | str, data: dict[str, Any]) -> QueryBuilder:
        spec = resolve_table(table)
        if spec.tenanted and self._column in data:
            # A record's tenant is fixed at creation.
            data = {k: v for k, v in data.items() if k != self._column}
            logger.warning(
                "tenant_column_dropped_from_update",
                table=spec.name,
                tenant_id=self._context.tenant_id,
            )
        return self._scope(spec, self._remote.table(spec.name).update(data))

    def delete(self, table: TableSpec | str) -> QueryBuilder:
        spec = resolve_table(table)
        return self._scope(spec, self._remote.table(spec.name).delete())

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a stored procedure; the response is subject to the same staleness guard."""
        result = await self._remote.rpc(function, params)
        if self._guard is not None:
            self._guard(self._context)
        return result
