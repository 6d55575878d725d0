"""Resolution, pinning and switching of the current tenant."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, NoReturn

import structlog

from itmanager.exceptions import (
    NoTenantAssigned,
    RemoteCallError,
    StaleTenantContext,
    TenantNotAvailable,
    TenantNotReady,
)
from itmanager.models.domain import Principal, Tenant, TenantAssociation
from itmanager.models.tables import Tables
from itmanager.tenancy.context import TenantContext
from itmanager.types import TenantState

if TYPE_CHECKING:
    from itmanager.remote.client import RemoteDatabase
    from itmanager.storage.session_store import SessionStore

logger = structlog.get_logger(__name__)

TenantListener = Callable[[TenantContext | None], Awaitable[None]]


def select_initial_tenant(
    associations: Sequence[TenantAssociation], tenants: Sequence[Tenant]
) -> Tenant:
    """Pick the tenant to pin after resolution.

    The association marked primary wins; when none is marked, the first
    association returned is treated as primary. If that tenant is not among
    the readable tenants, the first tenant (ordered by name) is used.
    """
    if not tenants:
        msg = "No tenants to choose from"
        raise NoTenantAssigned(msg)
    primary = next((a for a in associations if a.is_primary), None)
    if primary is None and associations:
        primary = associations[0]
    if primary is not None:
        for tenant in tenants:
            if tenant.id == primary.client_id:
                return tenant
    return tenants[0]


class TenantProvider:
    """Owns the current tenant pointer of one workspace.

    States: ``unauthenticated -> resolving -> ready`` or
    ``unauthenticated -> resolving -> denied``; ``ready -> ready`` on switch.
    The pointer only moves after the remote session context has accepted
    the new principal and tenant.
    """

    def __init__(
        self,
        remote: RemoteDatabase,
        store: SessionStore,
        *,
        signout_delay: float = 2.0,
        on_forced_sign_out: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._remote = remote
        self._store = store
        self._signout_delay = signout_delay
        self._on_forced_sign_out = on_forced_sign_out
        self._state = TenantState.UNAUTHENTICATED
        self._principal: Principal | None = None
        self._tenants: list[Tenant] = []
        self._current: Tenant | None = None
        self._epoch = 0
        self._lock = asyncio.Lock()
        self._listeners: list[TenantListener] = []
        self._pending_sign_out: asyncio.Task[None] | None = None
        self.last_error: str | None = None

    # -- read side ----------------------------------------------------------

    @property
    def state(self) -> TenantState:
        return self._state

    @property
    def tenants(self) -> list[Tenant]:
        return list(self._tenants)

    @property
    def current_tenant(self) -> Tenant | None:
        return self._current

    @property
    def current_tenant_id(self) -> str | None:
        return self._current.id if self._current else None

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def pending_sign_out(self) -> asyncio.Task[None] | None:
        return self._pending_sign_out

    def context(self) -> TenantContext:
        """Return the context for the pinned tenant.

        Raises TenantNotReady unless a tenant is pinned.
        """
        if self._state != TenantState.READY or self._current is None or self._principal is None:
            raise TenantNotReady(f"No tenant is pinned (state={self._state.value})")
        return TenantContext(
            principal_id=self._principal.user_id,
            tenant_id=self._current.id,
            epoch=self._epoch,
        )

    def ensure_current(self, context: TenantContext) -> None:
        """Raise StaleTenantContext if ``context`` no longer matches the pointer."""
        if self._state != TenantState.READY or context.epoch != self._epoch:
            logger.info(
                "stale_response_discarded",
                tenant_id=context.tenant_id,
                epoch=context.epoch,
                current_epoch=self._epoch,
            )
            raise StaleTenantContext(
                f"Response for tenant {context.tenant_id} arrived after a tenant change"
            )

    def add_listener(self, listener: TenantListener) -> None:
        """Register a callback awaited after every pin (context) or reset (None)."""
        self._listeners.append(listener)

    async def _notify(self, context: TenantContext | None) -> None:
        for listener in self._listeners:
            await listener(context)

    # -- transitions --------------------------------------------------------

    async def on_principal_changed(self, principal: Principal | None) -> None:
        if principal is None:
            await self.reset()
        else:
            await self.resolve(principal)

    async def resolve(self, principal: Principal) -> TenantContext:
        """Load the principal's tenants and pin the primary one.

        Raises NoTenantAssigned (and schedules a forced sign-out) when the
        principal has no tenants. Remote failures leave the provider in the
        resolving state so the caller can retry.
        """
        self._cancel_pending_sign_out()
        self._principal = principal
        self._state = TenantState.RESOLVING
        self._tenants = []
        self._current = None
        self._epoch += 1
        self.last_error = None
        log = logger.bind(principal_id=principal.user_id)
        log.info("tenant_resolution_started")

        try:
            await self._remote.rpc("set_session_user_id", {"p_user_id": principal.user_id})
            association_rows = await (
                self._remote.table(Tables.USER_CLIENTS.name)
                .select("client_id, is_primary")
                .eq("user_id", principal.user_id)
                .order("is_primary", desc=True)
                .execute()
            )
            associations = [TenantAssociation.model_validate(r) for r in association_rows or []]
            if not associations:
                await self._deny("User has no tenant assigned. Contact an administrator.")

            client_rows = await (
                self._remote.table(Tables.CLIENT.name)
                .select("client_id, name, is_demo")
                .in_("client_id", [a.client_id for a in associations])
                .order("name")
                .execute()
            )
            tenants = [Tenant.from_client_row(r) for r in client_rows or []]
            if not tenants:
                await self._deny("None of the user's tenants could be loaded.")

            self._tenants = tenants
            chosen = select_initial_tenant(associations, tenants)
            context = await self._pin(chosen)
        except RemoteCallError as exc:
            self.last_error = exc.message
            await self._store.clear_tenant_id()
            log.warning("tenant_resolution_failed", error=exc.message)
            raise

        log.info(
            "tenant_resolved",
            tenant_id=chosen.id,
            tenant_name=chosen.name,
            available=len(tenants),
        )
        return context

    async def retry(self) -> TenantContext:
        """Re-run resolution for the current principal after a remote failure."""
        if self._principal is None:
            raise TenantNotReady("No principal to resolve tenants for")
        return await self.resolve(self._principal)

    async def switch_tenant(self, tenant_id: str) -> TenantContext:
        """Pin another of the principal's tenants."""
        if self._state != TenantState.READY:
            raise TenantNotReady(f"Cannot switch tenant (state={self._state.value})")
        tenant = next((t for t in self._tenants if t.id == tenant_id), None)
        if tenant is None:
            raise TenantNotAvailable(f"Tenant {tenant_id} is not available to this user")
        previous = self.current_tenant_id
        context = await self._pin(tenant)
        logger.info("tenant_switched", from_tenant=previous, to_tenant=tenant.id)
        return context

    async def reset(self) -> None:
        """Forget the principal and the tenant pointer."""
        self._cancel_pending_sign_out()
        self._principal = None
        self._tenants = []
        self._current = None
        self._epoch += 1
        self._state = TenantState.UNAUTHENTICATED
        self.last_error = None
        await self._store.clear_tenant_id()
        await self._notify(None)

    async def _pin(self, tenant: Tenant) -> TenantContext:
        """Push principal and tenant to the remote session, then move the pointer.

        The local pointer is untouched if either remote call fails, so the
        caller never sees a context the remote has not accepted.
        """
        if self._principal is None:
            raise TenantNotReady("No principal to pin a tenant for")
        async with self._lock:
            await self._remote.rpc(
                "set_session_user_id", {"p_user_id": self._principal.user_id}
            )
            await self._remote.rpc("set_session_client_id", {"p_client_id": tenant.id})
            self._current = tenant
            self._epoch += 1
            self._state = TenantState.READY
            await self._store.save_tenant_id(tenant.id)
            context = self.context()
        await self._notify(context)
        return context

    async def _deny(self, message: str) -> NoReturn:
        self._state = TenantState.DENIED
        self._tenants = []
        self._current = None
        self.last_error = message
        await self._store.clear_tenant_id()
        logger.error(
            "tenant_denied",
            principal_id=self._principal.user_id if self._principal else None,
            reason=message,
            signout_in=self._signout_delay,
        )
        self._pending_sign_out = asyncio.create_task(self._forced_sign_out())
        raise NoTenantAssigned(message)

    async def _forced_sign_out(self) -> None:
        await asyncio.sleep(self._signout_delay)
        logger.info("forced_sign_out")
        if self._on_forced_sign_out is not None:
            await self._on_forced_sign_out()
        else:
            await self._store.clear()
            await self.reset()

    def _cancel_pending_sign_out(self) -> None:
        task = self._pending_sign_out
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._pending_sign_out = None
