import pytest

from itmanager.exceptions import (
    NoTenantAssigned,
    RemoteCallError,
    StaleTenantContext,
    TenantNotAvailable,
    TenantNotReady,
)
from itmanager.models.domain import Principal, Tenant, TenantAssociation
from itmanager.storage.session_store import SESSION_KEY, TENANT_KEY
from itmanager.tenancy.context import TenantContext
from itmanager.tenancy.provider import TenantProvider, select_initial_tenant
from itmanager.types import TenantState

ALICE = Principal(user_id="u-alice", email="alice@example.com", name="Alice")
BOB = Principal(user_id="u-bob", email="bob@example.com")


def _tenant(tid: str, name: str) -> Tenant:
    return Tenant(id=tid, name=name, slug=name.lower())


@pytest.fixture()
def provider(remote, store) -> TenantProvider:
    return TenantProvider(remote, store, signout_delay=0.01)


@pytest.mark.unit
class TestSelectInitialTenant:
    def test_primary_wins(self) -> None:
        tenants = [_tenant("A", "a"), _tenant("B", "b")]
        assocs = [TenantAssociation(client_id="A"), TenantAssociation(client_id="B", is_primary=True)]
        assert select_initial_tenant(assocs, tenants).id == "B"

    def test_first_association_when_none_primary(self) -> None:
        tenants = [_tenant("A", "a"), _tenant("B", "b")]
        assocs = [TenantAssociation(client_id="B"), TenantAssociation(client_id="A")]
        assert select_initial_tenant(assocs, tenants).id == "B"

    def test_falls_back_to_first_tenant(self) -> None:
        tenants = [_tenant("A", "a")]
        assocs = [TenantAssociation(client_id="GONE", is_primary=True)]
        assert select_initial_tenant(assocs, tenants).id == "A"

    def test_empty_tenants(self) -> None:
        with pytest.raises(NoTenantAssigned):
            select_initial_tenant([], [])


@pytest.mark.unit
class TestResolve:
    async def test_pins_primary_tenant(self, provider, fake, storage) -> None:
        context = await provider.resolve(ALICE)

        assert provider.state == TenantState.READY
        assert context.tenant_id == "T1"
        assert context.principal_id == "u-alice"
        assert [t.name for t in provider.tenants] == ["Acme Corp", "Beta Ltd"]
        assert provider.current_tenant.slug == "acme-corp"
        assert storage.snapshot()[TENANT_KEY] == "T1"
        assert fake.session_vars == {"user_id": "u-alice", "client_id": "T1"}

    async def test_client_lookup_uses_associations(self, provider, fake) -> None:
        await provider.resolve(ALICE)
        request = fake.table_requests("bmr_client")[0]
        assert request.url.params["client_id"] == "in.(T1,T2)"
        assert request.url.params["order"] == "name.asc"

    async def test_first_association_without_primary(self, provider, fake) -> None:
        fake.add_user("u-erin", "erin@example.com", "pw", clients=[("T2", False), ("T1", False)])
        context = await provider.resolve(Principal(user_id="u-erin", email="erin@example.com"))
        assert context.tenant_id == "T2"

    async def test_listener_receives_context(self, provider) -> None:
        seen: list[TenantContext | None] = []

        async def listener(ctx: TenantContext | None) -> None:
            seen.append(ctx)

        provider.add_listener(listener)
        context = await provider.resolve(ALICE)
        assert seen == [context]

    async def test_no_tenant_denies_and_signs_out(self, remote, store, storage) -> None:
        signed_out: list[bool] = []

        async def on_forced_sign_out() -> None:
            signed_out.append(True)

        provider = TenantProvider(
            remote, store, signout_delay=0.01, on_forced_sign_out=on_forced_sign_out
        )
        await storage.set_item(TENANT_KEY, "stale")

        with pytest.raises(NoTenantAssigned):
            await provider.resolve(BOB)

        assert provider.state == TenantState.DENIED
        assert provider.last_error
        assert TENANT_KEY not in storage.snapshot()
        assert signed_out == []
        await provider.pending_sign_out
        assert signed_out == [True]

    async def test_forced_sign_out_without_callback_clears_store(self, provider, storage) -> None:
        await storage.set_item(SESSION_KEY, "{}")
        with pytest.raises(NoTenantAssigned):
            await provider.resolve(BOB)
        await provider.pending_sign_out
        assert provider.state == TenantState.UNAUTHENTICATED
        assert storage.snapshot() == {}

    async def test_remote_failure_keeps_resolving_and_retry_recovers(self, provider, fake) -> None:
        fake.fail("table:bmr_user_clients", message="network down")
        with pytest.raises(RemoteCallError):
            await provider.resolve(ALICE)
        assert provider.state == TenantState.RESOLVING
        assert provider.last_error == "network down"
        assert provider.pending_sign_out is None

        context = await provider.retry()
        assert context.tenant_id == "T1"
        assert provider.last_error is None

    async def test_context_before_ready(self, provider) -> None:
        with pytest.raises(TenantNotReady):
            provider.context()


@pytest.mark.unit
class TestSwitchTenant:
    async def test_switch_pushes_both_session_values(self, provider, fake, storage) -> None:
        first = await provider.resolve(ALICE)
        fake.rpc_calls.clear()

        second = await provider.switch_tenant("T2")

        assert second.tenant_id == "T2"
        assert second.epoch > first.epoch
        assert fake.rpc_calls == [
            ("set_session_user_id", {"p_user_id": "u-alice"}),
            ("set_session_client_id", {"p_client_id": "T2"}),
        ]
        assert storage.snapshot()[TENANT_KEY] == "T2"

    async def test_switch_to_foreign_tenant(self, provider) -> None:
        await provider.resolve(ALICE)
        with pytest.raises(TenantNotAvailable):
            await provider.switch_tenant("T9")
        assert provider.current_tenant_id == "T1"

    async def test_failed_switch_leaves_pointer(self, provider, fake, storage) -> None:
        before = await provider.resolve(ALICE)
        fake.fail("rpc:set_session_client_id")

        with pytest.raises(RemoteCallError):
            await provider.switch_tenant("T2")

        assert provider.current_tenant_id == "T1"
        assert provider.epoch == before.epoch
        assert storage.snapshot()[TENANT_KEY] == "T1"
        provider.ensure_current(before)

    async def test_switch_requires_ready(self, provider) -> None:
        with pytest.raises(TenantNotReady):
            await provider.switch_tenant("T1")

    async def test_old_context_becomes_stale(self, provider) -> None:
        old = await provider.resolve(ALICE)
        await provider.switch_tenant("T2")
        with pytest.raises(StaleTenantContext):
            provider.ensure_current(old)


@pytest.mark.unit
class TestReset:
    async def test_reset_clears_pointer(self, provider, storage) -> None:
        seen: list[TenantContext | None] = []

        async def listener(ctx: TenantContext | None) -> None:
            seen.append(ctx)

        await provider.resolve(ALICE)
        provider.add_listener(listener)
        await provider.reset()

        assert provider.state == TenantState.UNAUTHENTICATED
        assert provider.current_tenant is None
        assert provider.tenants == []
        assert TENANT_KEY not in storage.snapshot()
        assert seen == [None]
