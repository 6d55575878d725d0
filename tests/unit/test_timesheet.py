import pytest

from itmanager.services.timesheet import (
    TimeLogService,
    TimesheetPermissions,
    can_approve_time_log,
    can_edit_time_log,
    permissions_for_profile,
)


@pytest.mark.unit
class TestPermissionsForProfile:
    @pytest.mark.parametrize(
        ("profile", "label", "view_all", "approve", "edit_all", "edit_own", "read_only"),
        [
            ("Admin", "Administrador", True, True, True, True, False),
            ("Super ADMINISTRADOR", "Administrador", True, True, True, True, False),
            ("gestor de projetos", "Gestor", True, True, False, True, False),
            ("Visualizador", "Visualizador", True, False, False, False, True),
            ("Desenvolvedor", "Usuário", False, False, False, True, False),
            (None, "Usuário", False, False, False, True, False),
        ],
    )
    def test_mapping(self, profile, label, view_all, approve, edit_all, edit_own, read_only) -> None:
        perms = permissions_for_profile(profile)
        assert perms.profile == label
        assert perms.can_view_all is view_all
        assert perms.can_approve is approve
        assert perms.can_edit_all is edit_all
        assert perms.can_edit_own is edit_own
        assert perms.is_read_only is read_only


@pytest.mark.unit
class TestTimeLogRules:
    def test_owner_edits_unapproved_log(self) -> None:
        log = {"user_email": "me@x", "is_approved": False}
        assert can_edit_time_log(log, "me@x", TimesheetPermissions())
        assert not can_edit_time_log(log, "you@x", TimesheetPermissions())

    def test_approved_log_locked_except_for_admin(self) -> None:
        log = {"user_email": "me@x", "is_approved": True}
        assert not can_edit_time_log(log, "me@x", TimesheetPermissions())
        assert can_edit_time_log(log, "me@x", permissions_for_profile("admin"))

    def test_cannot_approve_own_hours(self) -> None:
        manager = permissions_for_profile("gestor")
        assert not can_approve_time_log({"user_email": "me@x"}, "me@x", manager)
        assert can_approve_time_log({"user_email": "you@x"}, "me@x", manager)
        assert not can_approve_time_log({"user_email": "you@x", "is_approved": True}, "me@x", manager)
        assert not can_approve_time_log({"user_email": "you@x"}, "me@x", TimesheetPermissions())


@pytest.mark.unit
class TestTimeLogService:
    async def test_permissions_follow_session_profile(self, ready_workspace) -> None:
        perms = ready_workspace.service(TimeLogService).permissions()
        assert perms.profile == "Administrador"

    async def test_filter_by_user_email(self, ready_workspace, fake) -> None:
        fake.add_rows(
            "prj_time_log",
            {"user_email": "alice@example.com", "hours": 2, "date": "2026-01-02", "client_id": "T1"},
            {"user_email": "bob@example.com", "hours": 3, "date": "2026-01-03", "client_id": "T1"},
        )
        rows = await ready_workspace.service(TimeLogService).list_all(user_email="alice@example.com")
        assert [r["hours"] for r in rows] == [2]
