"""Tenant listing and switching."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from itmanager.web.dependencies import get_workspace, require_ready
from itmanager.workspace import Workspace

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


class SwitchTenantRequest(BaseModel):
    tenant_id: str


@router.get("")
async def list_tenants(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
    await workspace.ensure_tenant()
    provider = workspace.tenants
    return {
        "state": provider.state.value,
        "current_tenant_id": provider.current_tenant_id,
        "tenants": [tenant.model_dump() for tenant in provider.tenants],
    }


@router.post("/switch")
async def switch_tenant(
    body: SwitchTenantRequest,
    workspace: Workspace = Depends(require_ready),
) -> dict[str, Any]:
    context = await workspace.switch_tenant(body.tenant_id)
    current = workspace.tenants.current_tenant
    return {
        "tenant_id": context.tenant_id,
        "epoch": context.epoch,
        "current_tenant": current.model_dump() if current else None,
    }
