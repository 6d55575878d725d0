"""Health check endpoint logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from itmanager.exceptions import RemoteCallError

if TYPE_CHECKING:
    from itmanager.web.workspaces import WorkspaceRegistry

logger = structlog.get_logger(__name__)


async def check_health(registry: WorkspaceRegistry) -> dict[str, object]:
    """Return application health status with a remote database probe."""
    result: dict[str, object] = {
        "status": "healthy",
        "version": "0.1.0",
        "database": "connected",
        "workspaces": len(registry),
    }

    async with registry.new_remote() as remote:
        try:
            await remote.ping()
        except RemoteCallError as exc:
            logger.warning("health_check_db_failed", error=exc.message)
            result["database"] = "unavailable"
            result["status"] = "degraded"

    return result
