"""CRUD API routes for the tenant-scoped entities."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from itmanager.services.base import EntityService
from itmanager.services.catalog import ProjectCategoryService, StoryTypeService, UserTypeService
from itmanager.services.planning import (
    EpicService,
    FeatureService,
    ProjectService,
    SprintService,
    StoryService,
    TaskService,
)
from itmanager.services.timesheet import TimeLogService
from itmanager.services.tracking import IssueService, RiskService
from itmanager.web.dependencies import require_ready
from itmanager.workspace import Workspace

logger = structlog.get_logger(__name__)


def crud_router(prefix: str, service_cls: type[EntityService], *, tag: str) -> APIRouter:
    """Build list / get / create / update / delete routes for one service."""
    router = APIRouter(prefix=prefix, tags=[tag])
    not_found = "Record not found"

    @router.get("")
    async def list_records(
        request: Request,
        workspace: Workspace = Depends(require_ready),
    ) -> list[dict[str, Any]]:
        filters = {
            k: v for k, v in request.query_params.items() if k in service_cls.filter_fields
        }
        service = workspace.service(service_cls)
        return await workspace.run(service.list_all(**filters))

    @router.get("/{record_id}")
    async def get_record(
        record_id: str,
        workspace: Workspace = Depends(require_ready),
    ) -> dict[str, Any]:
        record = await workspace.run(workspace.service(service_cls).get(record_id))
        if record is None:
            raise HTTPException(status_code=404, detail=not_found)
        return record

    @router.post("", status_code=201)
    async def create_record(
        body: dict[str, Any] = Body(...),
        workspace: Workspace = Depends(require_ready),
    ) -> dict[str, Any]:
        return await workspace.run(workspace.service(service_cls).create(body))

    @router.put("/{record_id}")
    async def update_record(
        record_id: str,
        body: dict[str, Any] = Body(...),
        workspace: Workspace = Depends(require_ready),
    ) -> dict[str, Any]:
        record = await workspace.run(workspace.service(service_cls).update(record_id, body))
        if record is None:
            raise HTTPException(status_code=404, detail=not_found)
        return record

    @router.delete("/{record_id}")
    async def delete_record(
        record_id: str,
        workspace: Workspace = Depends(require_ready),
    ) -> Response:
        deleted = await workspace.run(workspace.service(service_cls).delete(record_id))
        if not deleted:
            raise HTTPException(status_code=404, detail=not_found)
        return Response(status_code=204)

    return router


# ---------------------------------------------------------------------------
# Stories with tasks
# ---------------------------------------------------------------------------


stories_extra = APIRouter(prefix="/api/stories", tags=["stories"])


class StoryWithTasksRequest(BaseModel):
    story: dict[str, Any]
    tasks: list[dict[str, Any]] = Field(default_factory=list)


@stories_extra.post("/with-tasks", status_code=201)
async def create_story_with_tasks(
    body: StoryWithTasksRequest,
    workspace: Workspace = Depends(require_ready),
) -> dict[str, Any]:
    service = workspace.service(StoryService)
    story, tasks = await workspace.run(service.create_with_tasks(body.story, body.tasks))
    return {"story": story, "tasks": tasks}


ROUTERS: list[APIRouter] = [
    stories_extra,
    crud_router("/api/projects", ProjectService, tag="projects"),
    crud_router("/api/epics", EpicService, tag="epics"),
    crud_router("/api/features", FeatureService, tag="features"),
    crud_router("/api/stories", StoryService, tag="stories"),
    crud_router("/api/tasks", TaskService, tag="tasks"),
    crud_router("/api/sprints", SprintService, tag="sprints"),
    crud_router("/api/issues", IssueService, tag="issues"),
    crud_router("/api/risks", RiskService, tag="risks"),
    crud_router("/api/user-types", UserTypeService, tag="user-types"),
    crud_router("/api/project-categories", ProjectCategoryService, tag="project-categories"),
    crud_router("/api/story-types", StoryTypeService, tag="story-types"),
    crud_router("/api/time-logs", TimeLogService, tag="time-logs"),
]
