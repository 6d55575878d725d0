"""Time logs and the profile-driven timesheet permissions."""

from __future__ import annotations

from pydantic import BaseModel

from itmanager.models.tables import Tables
from itmanager.services.base import EntityService, Row


class TimesheetPermissions(BaseModel):
    can_view_all: bool = False
    can_approve: bool = False
    can_edit_all: bool = False
    can_edit_own: bool = True
    is_read_only: bool = False
    profile: str = "Usuário"


def permissions_for_profile(profile: str | None) -> TimesheetPermissions:
    """Map a system-access profile name onto timesheet permissions.

    Matching is a case-insensitive substring test, checked in the order
    admin, gestor, visualizador. Anything else gets the default user rights.
    """
    name = (profile or "").lower()
    if "admin" in name:
        return TimesheetPermissions(
            can_view_all=True,
            can_approve=True,
            can_edit_all=True,
            can_edit_own=True,
            profile="Administrador",
        )
    if "gestor" in name:
        return TimesheetPermissions(
            can_view_all=True,
            can_approve=True,
            can_edit_own=True,
            profile="Gestor",
        )
    if "visualizador" in name:
        return TimesheetPermissions(
            can_view_all=True,
            can_edit_own=False,
            is_read_only=True,
            profile="Visualizador",
        )
    return TimesheetPermissions()


def can_edit_time_log(log: Row, user_email: str, permissions: TimesheetPermissions) -> bool:
    if permissions.can_edit_all:
        return True
    if log.get("is_approved"):
        return False
    return permissions.can_edit_own and log.get("user_email") == user_email


def can_approve_time_log(log: Row, user_email: str, permissions: TimesheetPermissions) -> bool:
    # Nobody approves their own hours.
    if log.get("is_approved") or not permissions.can_approve:
        return False
    return log.get("user_email") != user_email


class TimeLogService(EntityService):
    table = Tables.TIME_LOG
    entity = "time_logs"
    filter_fields = ("user_email", "project_id", "task_id")
    ordering = (("date", True), ("created_at", True))

    def permissions(self) -> TimesheetPermissions:
        return permissions_for_profile(self._session.profile if self._session else None)
