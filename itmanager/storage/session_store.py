"""Persistence of the session record and the current tenant pointer."""

from __future__ import annotations

import structlog
from pydantic import ValidationError

from itmanager.exceptions import SessionCorrupt
from itmanager.models.domain import Session
from itmanager.storage.local_store import LocalStorage

logger = structlog.get_logger(__name__)

SESSION_KEY = "bmr_session"
TENANT_KEY = "current_tenant_id"


class SessionStore:
    """Reads and writes the two durable keys of a workspace."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage

    async def load_session(self) -> Session | None:
        """Return the stored session, None if absent.

        Raises SessionCorrupt when the stored value cannot be parsed.
        """
        raw = await self._storage.get_item(SESSION_KEY)
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError as exc:
            raise SessionCorrupt(f"Stored session is malformed: {exc}") from exc

    async def save_session(self, session: Session) -> None:
        await self._storage.set_item(SESSION_KEY, session.model_dump_json())

    async def load_tenant_id(self) -> str | None:
        return await self._storage.get_item(TENANT_KEY)

    async def save_tenant_id(self, tenant_id: str) -> None:
        await self._storage.set_item(TENANT_KEY, tenant_id)

    async def clear_tenant_id(self) -> None:
        await self._storage.remove_item(TENANT_KEY)

    async def clear(self) -> None:
        """Remove both the session record and the tenant pointer."""
        await self._storage.remove_item(SESSION_KEY)
        await self._storage.remove_item(TENANT_KEY)
        logger.debug("session_store_cleared")

    async def clear_all(self) -> None:
        """Wipe the underlying storage namespace."""
        await self._storage.clear()
