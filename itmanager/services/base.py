"""Generic CRUD service over one tenant-scoped table."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

import structlog

if TYPE_CHECKING:
    from itmanager.models.domain import Session
    from itmanager.models.tables import TableSpec
    from itmanager.tenancy.cache import TenantQueryCache
    from itmanager.tenancy.query import TenantScopedQuery

logger = structlog.get_logger(__name__)

Row = dict[str, Any]


class EntityService:
    """list / get / create / update / delete for one entity.

    Subclasses set ``table`` and ``entity`` and may narrow ``filter_fields``
    and ``ordering``. Update and delete always carry an ``id`` filter on top
    of the tenant filter. List reads go through the tenant cache and every
    mutation invalidates the entity's entries for the current tenant.
    """

    table: ClassVar[TableSpec]
    entity: ClassVar[str]
    filter_fields: ClassVar[tuple[str, ...]] = ()
    ordering: ClassVar[tuple[tuple[str, bool], ...]] = (("created_at", True),)

    def __init__(
        self,
        query: TenantScopedQuery,
        cache: TenantQueryCache,
        *,
        session: Session | None = None,
    ) -> None:
        self._query = query
        self._cache = cache
        self._session = session

    @property
    def tenant_id(self) -> str:
        return self._query.tenant_id

    def _check_filters(self, filters: dict[str, Any]) -> dict[str, Any]:
        unknown = set(filters) - set(self.filter_fields)
        if unknown:
            msg = f"{self.entity} cannot be filtered by {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        return {k: v for k, v in filters.items() if v is not None}

    def _invalidate(self) -> None:
        self._cache.invalidate(self.tenant_id, self.entity)

    async def list_all(self, **filters: Any) -> list[Row]:
        active = self._check_filters(filters)
        key = (self.entity, tuple(sorted(active.items())))
        return await self._cache.get_or_load(self.tenant_id, key, lambda: self._fetch(active))

    async def _fetch(self, filters: dict[str, Any]) -> list[Row]:
        builder = self._query.select(self.table)
        for column, value in filters.items():
            builder.eq(column, value)
        for column, desc in self.ordering:
            builder.order(column, desc=desc)
        return await builder.execute() or []

    async def get(self, record_id: str) -> Row | None:
        return await self._query.select(self.table).eq("id", record_id).maybe_single().execute()

    async def create(self, data: Row) -> Row:
        row = await self._query.insert(self.table, data).select("*").single().execute()
        self._invalidate()
        logger.info(
            "entity_created", entity=self.entity, id=row.get("id"), tenant_id=self.tenant_id
        )
        return row

    async def update(self, record_id: str, data: Row) -> Row | None:
        rows = await self._query.update(self.table, data).eq("id", record_id).select("*").execute()
        self._invalidate()
        return rows[0] if rows else None

    async def delete(self, record_id: str) -> bool:
        rows = await self._query.delete(self.table).eq("id", record_id).select("id").execute()
        self._invalidate()
        deleted = bool(rows)
        if deleted:
            logger.info(
                "entity_deleted", entity=self.entity, id=record_id, tenant_id=self.tenant_id
            )
        return deleted
