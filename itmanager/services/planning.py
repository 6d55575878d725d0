"""Projects, epics, features, stories, tasks and sprints."""

from __future__ import annotations

from typing import Any

import structlog

from itmanager.models.tables import Tables
from itmanager.services.base import EntityService, Row
from itmanager.types import SprintStatus

logger = structlog.get_logger(__name__)


class ProjectService(EntityService):
    table = Tables.PROJECT
    entity = "projects"


class EpicService(EntityService):
    table = Tables.EPIC
    entity = "epics"
    filter_fields = ("project_id",)


class FeatureService(EntityService):
    table = Tables.FEATURE
    entity = "features"
    filter_fields = ("project_id", "epic_id")


class TaskService(EntityService):
    table = Tables.TASK
    entity = "tasks"
    filter_fields = ("project_id", "story_id", "sprint_id")


class StoryService(EntityService):
    table = Tables.STORY
    entity = "stories"
    filter_fields = ("project_id", "sprint_id", "feature_id")

    async def create_with_tasks(self, story: Row, tasks: list[Row]) -> tuple[Row, list[Row]]:
        """Create a story, then each of its tasks in order.

        Writes are sequential and not transactional: if a task insert fails,
        the story and any earlier tasks stay in place and the error propagates.
        """
        created = await self.create(story)
        task_service = TaskService(self._query, self._cache, session=self._session)
        created_tasks: list[Row] = []
        for task in tasks:
            payload: dict[str, Any] = {
                "story_id": created["id"],
                "project_id": created.get("project_id"),
                **task,
            }
            created_tasks.append(await task_service.create(payload))
        logger.info(
            "story_created_with_tasks",
            story_id=created["id"],
            tasks=len(created_tasks),
            tenant_id=self.tenant_id,
        )
        return created, created_tasks


def _sprint_sort_key(sprint: Row) -> tuple[bool, str]:
    return (
        sprint.get("status") == SprintStatus.COMPLETED,
        str(sprint.get("start_date") or ""),
    )


class SprintService(EntityService):
    """Sprints list with open sprints first, each group by start date."""

    table = Tables.SPRINT
    entity = "sprints"
    filter_fields = ("project_id",)
    ordering = (("start_date", False),)

    async def _fetch(self, filters: dict[str, Any]) -> list[Row]:
        rows = await super()._fetch(filters)
        return sorted(rows, key=_sprint_sort_key)
