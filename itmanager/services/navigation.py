"""Sidebar navigation and system display info."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from itmanager.models.tables import Tables

if TYPE_CHECKING:
    from itmanager.models.domain import Session
    from itmanager.tenancy.cache import TenantQueryCache
    from itmanager.tenancy.query import TenantScopedQuery

logger = structlog.get_logger(__name__)


class NavItem(BaseModel):
    title: str
    url: str
    icon: str


class SystemInfo(BaseModel):
    name: str
    description: str = ""
    logo_url: str | None = None


MENU: tuple[NavItem, ...] = (
    NavItem(title="Dashboard", url="/dashboard", icon="LayoutDashboard"),
    NavItem(title="Cadastros", url="/generalsettings", icon="Database"),
    NavItem(title="Projetos", url="/projetos", icon="Folder"),
    NavItem(title="Backlog", url="/backlog", icon="CheckSquare"),
    NavItem(title="Sprints", url="/sprints", icon="Calendar"),
    NavItem(title="Boards", url="/boards", icon="FolderKanban"),
    NavItem(title="Quadro Kanban", url="/quadro-kanban", icon="Kanban"),
    NavItem(title="Timesheet", url="/timesheet", icon="Clock"),
    NavItem(title="Métricas de Equipe", url="/team-metrics", icon="Users"),
    NavItem(title="Relatórios", url="/relatorios", icon="BarChart3"),
    NavItem(title="Configurações", url="/configuracoes", icon="Settings"),
)


class NavigationService:
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

    def menu(self) -> list[NavItem]:
        return list(MENU)

    async def system_info(self) -> SystemInfo | None:
        """Display info of this system from the shared ``bmr_system`` table."""
        if self._session is None:
            return None
        row = await (
            self._query.select(Tables.SYSTEM, "name, description, logo_url")
            .eq("system_id", self._session.system_id)
            .maybe_single()
            .execute()
        )
        if row is None:
            logger.warning("system_info_missing", system_id=self._session.system_id)
            return None
        return SystemInfo(
            name=row["name"],
            description=row.get("description") or "",
            logo_url=row.get("logo_url"),
        )

    async def sidebar(self) -> dict[str, Any]:
        info = await self.system_info()
        return {
            "system": info.model_dump() if info else None,
            "items": [item.model_dump() for item in self.menu()],
        }
