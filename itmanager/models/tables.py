"""Registry of database tables and whether each is tenant-scoped."""

from __future__ import annotations

from dataclasses import dataclass

from itmanager.exceptions import UnknownTableError


@dataclass(frozen=True, slots=True)
class TableSpec:
    """Descriptor for one table of the remote database."""

    name: str
    tenanted: bool = True

    def __str__(self) -> str:
        return self.name


class Tables:
    """All tables the application touches."""

    # Project management
    PROJECT = TableSpec("prj_project")
    PROJECT_CATEGORY = TableSpec("prj_project_category")
    BOARD = TableSpec("prj_board")
    SPRINT = TableSpec("prj_sprint")
    SPRINT_REPORT = TableSpec("prj_sprint_report")

    # Stories and tasks
    EPIC = TableSpec("prj_epic")
    FEATURE = TableSpec("prj_feature")
    STORY = TableSpec("prj_story")
    STORY_TYPE = TableSpec("prj_story_type")
    TASK = TableSpec("prj_task")
    TASK_TYPE = TableSpec("prj_task_type")

    # Team and users
    TEAM = TableSpec("prj_team")
    USER_TYPE = TableSpec("prj_user_type")

    # Time tracking
    TIME_LOG = TableSpec("prj_time_log")
    TIME_TRACKING_SESSION = TableSpec("prj_time_tracking_session")

    # Other
    COMMENT = TableSpec("prj_comment")
    NOTIFICATION = TableSpec("prj_notification")
    ISSUE = TableSpec("prj_issue")
    RISK = TableSpec("prj_risk")
    RESOURCE_ALLOCATION = TableSpec("prj_resource_allocation")
    PLANNING_POKER_SESSION = TableSpec("prj_planning_poker_session")
    PLANNING_POKER_VOTE = TableSpec("prj_planning_poker_vote")
    DASHBOARD_CONFIG = TableSpec("prj_dashboard_config")
    CUSTOM_COMPLEXITY_SETTING = TableSpec("prj_custom_complexity_setting")
    SYSTEM_SETTINGS = TableSpec("prj_system_settings")
    WORK_CALENDAR = TableSpec("prj_work_calendar")
    HOLIDAY = TableSpec("prj_holiday")

    # Shared user / tenant directory
    CLIENT = TableSpec("bmr_client")
    USER_CLIENTS = TableSpec("bmr_user_clients")
    USER_SYSTEM_ACCESS = TableSpec("bmr_user_system_access")
    USER = TableSpec("bmr_user", tenanted=False)
    PLAN = TableSpec("bmr_plan", tenanted=False)
    SYSTEM = TableSpec("bmr_system", tenanted=False)


REGISTRY: dict[str, TableSpec] = {
    spec.name: spec for spec in vars(Tables).values() if isinstance(spec, TableSpec)
}

GLOBAL_TABLES = frozenset(name for name, spec in REGISTRY.items() if not spec.tenanted)


def resolve_table(table: TableSpec | str) -> TableSpec:
    """Return the registered descriptor for ``table``.

    Raises UnknownTableError for names that are not registered, so a typo can
    never silently bypass tenant scoping.
    """
    if isinstance(table, TableSpec):
        registered = REGISTRY.get(table.name)
        if registered is None:
            msg = f"Table {table.name!r} is not registered"
            raise UnknownTableError(msg)
        return registered
    spec = REGISTRY.get(table)
    if spec is None:
        msg = f"Table {table!r} is not registered"
        raise UnknownTableError(msg)
    return spec
