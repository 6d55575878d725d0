"""Sign-in, sign-out and session restoration against the remote user directory."""

from __future__ import annotations

import secrets
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog

from itmanager.exceptions import (
    InvalidCredentials,
    NoSystemAccess,
    RegistrationDisabled,
    RemoteCallError,
    SessionCorrupt,
)
from itmanager.models.domain import Principal, Session, SystemAccess
from itmanager.models.tables import Tables

if TYPE_CHECKING:
    from itmanager.remote.client import RemoteDatabase
    from itmanager.storage.session_store import SessionStore

logger = structlog.get_logger(__name__)

PrincipalListener = Callable[[Principal | None], Awaitable[None]]


class AuthProvider:
    """Establishes and tears down the signed-in principal.

    Listeners are awaited, in registration order, whenever the principal
    changes (sign-in, sign-out, restore). An exception raised by a listener
    propagates to the caller of the operation that triggered it.
    """

    def __init__(
        self,
        remote: RemoteDatabase,
        store: SessionStore,
        *,
        system_id: str,
        session_ttl_seconds: int = 3600,
    ) -> None:
        self._remote = remote
        self._store = store
        self._system_id = system_id
        self._ttl = session_ttl_seconds
        self._session: Session | None = None
        self._listeners: list[PrincipalListener] = []

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def principal(self) -> Principal | None:
        return self._session.principal if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def add_listener(self, listener: PrincipalListener) -> None:
        self._listeners.append(listener)

    async def _notify(self) -> None:
        for listener in self._listeners:
            await listener(self.principal)

    async def restore(self) -> Session | None:
        """Load the durable session, as on a page load.

        A malformed record is discarded together with the tenant pointer and
        the provider starts unauthenticated.
        """
        try:
            session = await self._store.load_session()
        except SessionCorrupt as exc:
            logger.warning("session_corrupt_discarded", error=str(exc))
            await self._store.clear()
            return None
        if session is None:
            return None

        await self._remote.rpc(
            "set_session_user_id", {"p_user_id": session.principal.user_id}
        )
        self._session = session
        logger.info("session_restored", principal_id=session.principal.user_id)
        await self._notify()
        return session

    async def sign_in(self, email: str, password: str) -> Session:
        """Authenticate, check system access and persist the session."""
        try:
            result = await self._remote.rpc(
                "authenticate_user", {"p_email": email, "p_password": password}
            )
        except RemoteCallError as exc:
            logger.warning("authenticate_failed", email=email, error=exc.message)
            raise

        principal = _first_active_principal(result)
        if principal is None:
            logger.info("sign_in_rejected", email=email, reason="invalid_credentials")
            raise InvalidCredentials("Incorrect email or password")

        # Row-level security consults this variable, so it has to be set
        # before the access check below can see any rows.
        await self._remote.rpc("set_session_user_id", {"p_user_id": principal.user_id})

        access_row = await (
            self._remote.table(Tables.USER_SYSTEM_ACCESS.name)
            .select("*")
            .eq("user_id", principal.user_id)
            .eq("system_id", self._system_id)
            .maybe_single()
            .execute()
        )
        if access_row is None:
            logger.info(
                "sign_in_rejected",
                principal_id=principal.user_id,
                reason="no_system_access",
            )
            raise NoSystemAccess(
                "User has no access to this system. Contact an administrator."
            )
        access = SystemAccess.model_validate(access_row)

        session = Session(
            principal=principal,
            access_token=secrets.token_urlsafe(32),
            expires_at=time.time() + self._ttl,
            system_id=self._system_id,
            profile=access.profile,
        )
        await self._store.save_session(session)
        self._session = session
        logger.info(
            "signed_in",
            principal_id=principal.user_id,
            profile=access.profile,
        )
        await self._notify()
        return session

    async def sign_out(self) -> None:
        """Clear the in-memory and durable session and notify listeners."""
        principal_id = self._session.principal.user_id if self._session else None
        self._session = None
        await self._store.clear()
        logger.info("signed_out", principal_id=principal_id)
        await self._notify()

    async def sign_up(self, email: str, password: str, full_name: str) -> None:
        """Self-service registration is disabled; accounts are provisioned by admins."""
        logger.info("sign_up_rejected", email=email)
        raise RegistrationDisabled(
            "Registration is not available. Contact an administrator."
        )


def _first_active_principal(result: Any) -> Principal | None:
    rows = result if isinstance(result, list) else ([result] if result else [])
    if not rows:
        return None
    principal = Principal.model_validate(rows[0])
    if not principal.is_active:
        return None
    return principal
