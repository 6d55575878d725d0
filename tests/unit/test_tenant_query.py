import pytest

from itmanager.exceptions import StaleTenantContext, UnknownTableError
from itmanager.models.tables import GLOBAL_TABLES, REGISTRY, Tables
from itmanager.tenancy.context import TenantContext
from itmanager.tenancy.query import TenantScopedQuery, stamp_tenant

CTX = TenantContext(principal_id="u-alice", tenant_id="T1", epoch=3)

OPERATIONS = {
    "select": lambda facade, table: facade.select(table),
    "insert": lambda facade, table: facade.insert(table, {"name": "x", "client_id": "T9"}),
    "update": lambda facade, table: facade.update(table, {"name": "x", "client_id": "T9"}),
    "delete": lambda facade, table: facade.delete(table),
}

TENANTED_TABLES = sorted(name for name, spec in REGISTRY.items() if spec.tenanted)


@pytest.fixture()
def facade(remote) -> TenantScopedQuery:
    return TenantScopedQuery(remote, CTX)


@pytest.mark.unit
class TestStampTenant:
    def test_stamps_single_row(self) -> None:
        assert stamp_tenant({"name": "x"}, "client_id", "T1") == {"name": "x", "client_id": "T1"}

    def test_stamps_every_row(self) -> None:
        rows = stamp_tenant([{"a": 1}, {"a": 2}], "client_id", "T1")
        assert [r["client_id"] for r in rows] == ["T1", "T1"]

    def test_overrides_caller_value_and_is_idempotent(self) -> None:
        once = stamp_tenant({"client_id": "T2"}, "client_id", "T1")
        assert once == {"client_id": "T1"}
        assert stamp_tenant(once, "client_id", "T1") == once

    def test_does_not_mutate_input(self) -> None:
        row = {"name": "x"}
        stamp_tenant(row, "client_id", "T1")
        assert row == {"name": "x"}


@pytest.mark.unit
class TestTenantScopedQuery:
    def test_select_adds_tenant_filter(self, facade) -> None:
        qb = facade.select("prj_project", "id, name")
        assert qb.has_filter("client_id", value="T1")
        assert qb.columns == "id, name"

    def test_exempt_table_unfiltered(self, facade) -> None:
        for table in ("bmr_user", "bmr_plan", "bmr_system"):
            assert facade.select(table).filters == []

    def test_insert_stamps_rows(self, facade) -> None:
        qb = facade.insert(Tables.TASK, [{"title": "a"}, {"title": "b", "client_id": "T2"}])
        assert [row["client_id"] for row in qb.payload] == ["T1", "T1"]

    def test_insert_into_exempt_table_untouched(self, facade) -> None:
        qb = facade.insert("bmr_user", {"email": "x@example.com"})
        assert qb.payload == {"email": "x@example.com"}

    def test_update_strips_tenant_column_and_filters(self, facade) -> None:
        qb = facade.update("prj_project", {"name": "n", "client_id": "T2"})
        assert qb.payload == {"name": "n"}
        assert qb.has_filter("client_id", value="T1")

    def test_delete_filters_by_tenant(self, facade) -> None:
        qb = facade.delete("prj_risk").eq("id", "r1")
        assert qb.has_filter("client_id", value="T1")
        assert qb.has_filter("id", value="r1")

    def test_unknown_table(self, facade) -> None:
        with pytest.raises(UnknownTableError):
            facade.select("prj_unknown")

    def test_custom_tenant_column(self, remote) -> None:
        facade = TenantScopedQuery(remote, CTX, tenant_column="org_id")
        assert facade.select("prj_project").has_filter("org_id", value="T1")

    async def test_wire_request_carries_filter(self, facade, fake) -> None:
        fake.add_rows("prj_project", {"name": "mine", "client_id": "T1"}, {"name": "other", "client_id": "T2"})
        rows = await facade.select("prj_project").execute()
        assert [r["name"] for r in rows] == ["mine"]
        assert fake.table_requests("prj_project")[0].url.params["client_id"] == "eq.T1"

    async def test_guard_runs_after_response(self, remote, fake) -> None:
        def guard(ctx: TenantContext) -> None:
            raise StaleTenantContext(ctx.tenant_id)

        facade = TenantScopedQuery(remote, CTX, guard=guard)
        with pytest.raises(StaleTenantContext):
            await facade.select("prj_project").execute()
        assert len(fake.table_requests("prj_project")) == 1

    async def test_rpc_is_guarded(self, remote) -> None:
        checked: list[TenantContext] = []
        facade = TenantScopedQuery(remote, CTX, guard=checked.append)
        await facade.rpc("set_session_client_id", {"p_client_id": "T1"})
        assert checked == [CTX]


@pytest.mark.unit
class TestScopingRules:
    @pytest.mark.parametrize("operation", sorted(OPERATIONS))
    @pytest.mark.parametrize("table", sorted(GLOBAL_TABLES))
    def test_global_tables_never_scoped(self, facade, table, operation) -> None:
        qb = OPERATIONS[operation](facade, table)
        assert qb.filters == []
        if operation in ("insert", "update"):
            assert qb.payload == {"name": "x", "client_id": "T9"}

    @pytest.mark.parametrize("tenant_id", ["T1", "T2"])
    @pytest.mark.parametrize("operation", ["select", "update", "delete"])
    @pytest.mark.parametrize("table", TENANTED_TABLES)
    def test_tenanted_tables_filtered_by_current_tenant(
        self, remote, table, operation, tenant_id
    ) -> None:
        facade = TenantScopedQuery(remote, TenantContext("u-alice", tenant_id, epoch=1))
        qb = OPERATIONS[operation](facade, table)
        assert [(f.column, f.operator, f.value) for f in qb.filters] == [
            ("client_id", "eq", tenant_id)
        ]

    @pytest.mark.parametrize("tenant_id", ["T1", "T2"])
    @pytest.mark.parametrize("table", TENANTED_TABLES)
    def test_tenanted_inserts_stamped(self, remote, table, tenant_id) -> None:
        facade = TenantScopedQuery(remote, TenantContext("u-alice", tenant_id, epoch=1))
        qb = OPERATIONS["insert"](facade, table)
        assert qb.payload == {"name": "x", "client_id": tenant_id}
        assert qb.filters == []
