"""Timesheet permission routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from itmanager.services.timesheet import (
    TimeLogService,
    can_approve_time_log,
    can_edit_time_log,
)
from itmanager.web.dependencies import require_ready
from itmanager.workspace import Workspace

router = APIRouter(prefix="/api/time-logs", tags=["time-logs"])


@router.get("/permissions")
async def get_permissions(workspace: Workspace = Depends(require_ready)) -> dict[str, Any]:
    return workspace.service(TimeLogService).permissions().model_dump()


@router.get("/{record_id}/permissions")
async def get_record_permissions(
    record_id: str,
    workspace: Workspace = Depends(require_ready),
) -> dict[str, bool]:
    """What the caller may do with one time log."""
    service = workspace.service(TimeLogService)
    log = await workspace.run(service.get(record_id))
    if log is None:
        raise HTTPException(status_code=404, detail="Record not found")
    permissions = service.permissions()
    principal = workspace.auth.principal
    email = principal.email if principal else ""
    return {
        "can_edit": can_edit_time_log(log, email, permissions),
        "can_approve": can_approve_time_log(log, email, permissions),
    }
