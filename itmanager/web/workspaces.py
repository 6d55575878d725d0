"""Registry of live workspaces keyed by session cookie."""

from __future__ import annotations

import asyncio
import hashlib
import pathlib
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from itmanager.exceptions import ITManagerError
from itmanager.remote.client import RemoteDatabase
from itmanager.storage.local_store import FileLocalStorage, LocalStorage
from itmanager.web.auth.session import SessionAuth
from itmanager.workspace import Workspace

if TYPE_CHECKING:
    from itmanager.config.settings import Settings

logger = structlog.get_logger(__name__)

RemoteFactory = Callable[[], RemoteDatabase]
StorageFactory = Callable[[str], LocalStorage]


class WorkspaceRegistry:
    """Maps session tokens to workspaces, rehydrating from disk on demand.

    Each workspace owns its own remote client and durable storage namespace,
    the server-side counterpart of one browser tab. Lookups of resident
    workspaces never wait on the remote; concurrent rehydrations of the same
    token share one restore. Workspaces idle for longer than the cookie
    lifetime, or found signed out, are closed and dropped.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session_auth: SessionAuth | None = None,
        remote_factory: RemoteFactory | None = None,
        storage_factory: StorageFactory | None = None,
    ) -> None:
        self._settings = settings
        self._auth = session_auth or SessionAuth(
            secret_key=settings.secret_key, max_age=settings.cookie_max_age
        )
        self._remote_factory = remote_factory or self._default_remote
        self._storage_factory = storage_factory or self._default_storage
        self._workspaces: dict[str, Workspace] = {}
        self._last_seen: dict[str, float] = {}
        self._restoring: dict[str, asyncio.Task[Workspace | None]] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def session_auth(self) -> SessionAuth:
        return self._auth

    def _default_remote(self) -> RemoteDatabase:
        return RemoteDatabase(
            self._settings.supabase_url,
            self._settings.supabase_key,
            timeout=self._settings.request_timeout,
        )

    def _default_storage(self, key: str) -> LocalStorage:
        namespace = hashlib.sha256(key.encode()).hexdigest()[:32]
        return FileLocalStorage(pathlib.Path(self._settings.storage_dir).expanduser() / namespace)

    def new_remote(self) -> RemoteDatabase:
        return self._remote_factory()

    def _build(self, key: str) -> Workspace:
        return Workspace(self._remote_factory(), self._storage_factory(key), self._settings)

    def _add(self, key: str, workspace: Workspace) -> None:
        self._workspaces[key] = workspace
        self._last_seen[key] = time.time()

    async def create(self) -> tuple[str, Workspace]:
        """Issue a token and an empty workspace for it."""
        await self.sweep()
        token = self._auth.create_session()
        key = self._auth.validate_session(token)
        if key is None:
            msg = "Freshly issued session token failed validation"
            raise RuntimeError(msg)
        workspace = self._build(key)
        self._add(key, workspace)
        return token, workspace

    async def get(self, token: str | None) -> Workspace | None:
        """Return the workspace for ``token``.

        A valid token whose workspace is not in memory is restored from
        durable storage. Returns None for invalid tokens, for tokens with no
        stored session and for workspaces whose principal has signed out.
        """
        await self.sweep()
        key = self._auth.validate_session(token)
        if key is None:
            return None
        workspace = self._workspaces.get(key)
        if workspace is None:
            return await self._rehydrate(key)
        if not workspace.auth.is_authenticated:
            logger.info("workspace_signed_out_dropped")
            await self._drop(key)
            return None
        self._last_seen[key] = time.time()
        return workspace

    async def _rehydrate(self, key: str) -> Workspace | None:
        task = self._restoring.get(key)
        if task is None:
            task = asyncio.create_task(self._restore(key))
            self._restoring[key] = task
            task.add_done_callback(lambda _: self._restoring.pop(key, None))
        return await asyncio.shield(task)

    async def _restore(self, key: str) -> Workspace | None:
        workspace = self._build(key)
        try:
            session = await workspace.restore()
        except ITManagerError:
            # Keep it only if the principal was restored and tenancy can be retried.
            if workspace.auth.is_authenticated:
                self._add(key, workspace)
            else:
                await workspace.close()
            raise
        if session is None:
            await workspace.close()
            return None
        self._add(key, workspace)
        logger.info("workspace_rehydrated", principal_id=session.principal.user_id)
        return workspace

    def peek(self, token: str | None) -> Workspace | None:
        """Return the in-memory workspace for ``token`` without restoring it."""
        key = self._auth.validate_session(token)
        return self._workspaces.get(key) if key is not None else None

    async def discard(self, token: str | None, *, wipe: bool = True) -> None:
        """Close a workspace and, by default, delete its durable storage."""
        key = self._auth.validate_session(token)
        if key is not None:
            await self._drop(key, wipe=wipe)

    async def sweep(self) -> int:
        """Close and wipe workspaces idle for longer than a token can live."""
        cutoff = time.time() - self._auth.max_age
        expired = [key for key, seen in self._last_seen.items() if seen < cutoff]
        for key in expired:
            await self._drop(key, wipe=True)
        if expired:
            logger.info("workspaces_expired", count=len(expired))
        return len(expired)

    async def _drop(self, key: str, *, wipe: bool = False) -> None:
        workspace = self._workspaces.pop(key, None)
        self._last_seen.pop(key, None)
        if workspace is None:
            if wipe:
                await self._storage_factory(key).clear()
            return
        await workspace.close()
        if wipe:
            await workspace.store.clear_all()

    async def close_all(self) -> None:
        workspaces = list(self._workspaces.values())
        self._workspaces.clear()
        self._last_seen.clear()
        for workspace in workspaces:
            await workspace.close()
