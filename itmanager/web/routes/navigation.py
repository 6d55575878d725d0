"""Sidebar navigation route."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from itmanager.services.navigation import NavigationService
from itmanager.web.dependencies import require_ready
from itmanager.workspace import Workspace

router = APIRouter(prefix="/api/navigation", tags=["navigation"])


@router.get("")
async def get_navigation(workspace: Workspace = Depends(require_ready)) -> dict[str, Any]:
    service = workspace.service(NavigationService)
    return await workspace.run(service.sidebar())
