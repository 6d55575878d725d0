"""Configurable catalogs: user types, project categories and story types.

Project categories and story types are written through stored procedures
that check the acting user's rights server-side; reads go through the tenant
facade like any other entity.
"""

from __future__ import annotations

from typing import Any, ClassVar

import structlog

from itmanager.models.tables import Tables
from itmanager.services.base import EntityService, Row

logger = structlog.get_logger(__name__)

CATALOG_FIELDS = ("name", "code", "description", "icon", "color", "is_active", "order")


class UserTypeService(EntityService):
    table = Tables.USER_TYPE
    entity = "user_types"
    ordering = (("order", False),)


class ProcedureCatalogService(EntityService):
    """Catalog whose mutations are ``insert_/update_/delete_<procedure>`` calls."""

    procedure: ClassVar[str]
    defaults: ClassVar[dict[str, Any]] = {}
    sends_tenant: ClassVar[bool] = False
    ordering = (("order", False),)

    def _params(self, data: Row) -> dict[str, Any]:
        merged = {**self.defaults, **data}
        return {f"p_{field}": merged.get(field) for field in CATALOG_FIELDS}

    def _actor(self) -> dict[str, Any]:
        return {"p_user_id": self._query.context.principal_id}

    async def create(self, data: Row) -> Row:
        params = {**self._actor(), **self._params(data)}
        if self.sends_tenant:
            params["p_client_id"] = self.tenant_id
        result = await self._query.rpc(f"insert_{self.procedure}", params)
        self._invalidate()
        logger.info("catalog_entry_created", entity=self.entity, tenant_id=self.tenant_id)
        return _as_row(result, {**self.defaults, **data})

    async def update(self, record_id: str, data: Row) -> Row | None:
        current = await self.get(record_id)
        if current is None:
            return None
        merged = {**current, **data}
        params = {**self._actor(), "p_id": record_id, **self._params(merged)}
        result = await self._query.rpc(f"update_{self.procedure}", params)
        self._invalidate()
        return _as_row(result, merged)

    async def delete(self, record_id: str) -> bool:
        if await self.get(record_id) is None:
            return False
        await self._query.rpc(f"delete_{self.procedure}", {**self._actor(), "p_id": record_id})
        self._invalidate()
        logger.info("catalog_entry_deleted", entity=self.entity, id=record_id)
        return True


class ProjectCategoryService(ProcedureCatalogService):
    table = Tables.PROJECT_CATEGORY
    entity = "project_categories"
    procedure = "project_category"
    defaults = {
        "description": "",
        "icon": "Folder",
        "color": "#3b82f6",
        "is_active": True,
        "order": 0,
    }
    sends_tenant = True


class StoryTypeService(ProcedureCatalogService):
    table = Tables.STORY_TYPE
    entity = "story_types"
    procedure = "story_type"
    defaults = {
        "description": "",
        "icon": "BookOpen",
        "color": "#3b82f6",
        "is_active": True,
        "order": 0,
    }


def _as_row(result: Any, fallback: Row) -> Row:
    """Normalise a procedure result (row, rows or bare id) into one row."""
    if isinstance(result, list):
        result = result[0] if result else None
    if isinstance(result, dict):
        return result
    if result is None:
        return dict(fallback)
    return {**fallback, "id": result}
