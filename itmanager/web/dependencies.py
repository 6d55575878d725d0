"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from functools import lru_cache

import structlog
from fastapi import Depends, Request

from itmanager.config.settings import get_settings
from itmanager.exceptions import NotAuthenticated
from itmanager.web.auth.session import COOKIE_NAME
from itmanager.web.workspaces import WorkspaceRegistry
from itmanager.workspace import Workspace

logger = structlog.get_logger(__name__)


@lru_cache
def get_registry() -> WorkspaceRegistry:
    return WorkspaceRegistry(get_settings())


async def get_workspace(
    request: Request,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Workspace:
    """Resolve the caller's workspace from the session cookie.

    Raises NotAuthenticated when the cookie is missing, forged, expired or
    names a workspace with no signed-in principal.
    """
    workspace = await registry.get(request.cookies.get(COOKIE_NAME))
    if workspace is None or not workspace.auth.is_authenticated:
        raise NotAuthenticated("Not authenticated")
    return workspace


async def require_ready(workspace: Workspace = Depends(get_workspace)) -> Workspace:
    """Like get_workspace, but also requires a pinned tenant."""
    await workspace.ensure_tenant()
    workspace.tenants.context()
    return workspace

