"""Workspace: the per-principal composition of session, tenancy and data access."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

import structlog

from itmanager.auth.provider import AuthProvider
from itmanager.exceptions import NotAuthenticated
from itmanager.storage.session_store import SessionStore
from itmanager.tenancy.cache import TenantQueryCache
from itmanager.tenancy.provider import TenantProvider
from itmanager.tenancy.query import TenantScopedQuery
from itmanager.tenancy.scope import TaskScope
from itmanager.types import TenantState

if TYPE_CHECKING:
    from itmanager.config.settings import Settings
    from itmanager.models.domain import Session
    from itmanager.remote.client import RemoteDatabase
    from itmanager.storage.local_store import LocalStorage
    from itmanager.tenancy.context import TenantContext

logger = structlog.get_logger(__name__)

T = TypeVar("T")
S = TypeVar("S")


class Workspace:
    """Everything one signed-in browser needs, wired in dependency order.

    Auth establishes the principal, the tenant provider pins a tenant in
    response, and the facade, cache and services read the pinned tenant
    through an explicit TenantContext.
    """

    def __init__(
        self,
        remote: RemoteDatabase,
        storage: LocalStorage,
        settings: Settings,
    ) -> None:
        self.remote = remote
        self.settings = settings
        self.store = SessionStore(storage)
        self.cache = TenantQueryCache(ttl_seconds=settings.tenant_cache_ttl)
        self.scope = TaskScope()
        self.auth = AuthProvider(
            remote,
            self.store,
            system_id=settings.system_id,
            session_ttl_seconds=settings.session_ttl_seconds,
        )
        self.tenants = TenantProvider(
            remote,
            self.store,
            signout_delay=settings.no_tenant_signout_delay,
            on_forced_sign_out=self.auth.sign_out,
        )
        self.auth.add_listener(self.tenants.on_principal_changed)
        self.tenants.add_listener(self._on_tenant_changed)

    async def _on_tenant_changed(self, context: TenantContext | None) -> None:
        self.scope.cancel_all()
        if context is None:
            self.cache.clear()
        else:
            self.cache.invalidate(context.tenant_id)

    # -- lifecycle ----------------------------------------------------------

    async def restore(self) -> Session | None:
        """Rehydrate from durable storage and re-sync the remote session."""
        return await self.auth.restore()

    async def sign_in(self, email: str, password: str) -> Session:
        return await self.auth.sign_in(email, password)

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    async def switch_tenant(self, tenant_id: str) -> TenantContext:
        return await self.tenants.switch_tenant(tenant_id)

    async def ensure_tenant(self) -> TenantState:
        """Retry tenant resolution if an earlier attempt failed remotely."""
        if (
            self.auth.is_authenticated
            and self.tenants.state == TenantState.RESOLVING
            and self.tenants.last_error is not None
        ):
            await self.tenants.retry()
        return self.tenants.state

    async def close(self) -> None:
        self.scope.cancel_all()
        pending = self.tenants.pending_sign_out
        if pending is not None and not pending.done():
            pending.cancel()
        await self.remote.aclose()

    # -- data access --------------------------------------------------------

    def query(self) -> TenantScopedQuery:
        """Facade bound to the currently pinned tenant."""
        if not self.auth.is_authenticated:
            raise NotAuthenticated("Sign in first")
        return TenantScopedQuery(
            self.remote,
            self.tenants.context(),
            tenant_column=self.settings.tenant_column,
            guard=self.tenants.ensure_current,
        )

    def service(self, service_cls: type[S]) -> S:
        return service_cls(self.query(), self.cache, session=self.auth.session)

    async def run(self, coro: Awaitable[T]) -> T:
        """Await ``coro`` so that a tenant switch or sign-out cancels it."""
        return await self.scope.run(coro)
