"""Durable key/value storage for client-side session state."""

from __future__ import annotations

import asyncio
import pathlib  # noqa: TC003 - used at runtime for Path operations
import re
import shutil
from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalStorage(ABC):
    """String key/value store that survives process restarts."""

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""


class InMemoryLocalStorage(LocalStorage):
    """Process-local storage for tests and ephemeral workspaces."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> dict[str, str]:
        return dict(self._items)


class FileLocalStorage(LocalStorage):
    """Storage backed by one file per key inside a namespace directory."""

    def __init__(self, base_dir: pathlib.Path) -> None:
        self._base = base_dir.resolve()

    @property
    def base_dir(self) -> pathlib.Path:
        return self._base

    def _resolve_path(self, key: str) -> pathlib.Path:
        if not _VALID_KEY.match(key):
            msg = f"Invalid storage key: {key!r}"
            raise ValueError(msg)
        return self._base / key

    async def get_item(self, key: str) -> str | None:
        path = self._resolve_path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def set_item(self, key: str, value: str) -> None:
        path = self._resolve_path(key)

        def _write() -> None:
            self._base.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(f"{path.name}.tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)

        await asyncio.to_thread(_write)
        logger.debug("local_storage_set", key=key, namespace=self._base.name)

    async def remove_item(self, key: str) -> None:
        path = self._resolve_path(key)
        if path.exists():
            await asyncio.to_thread(path.unlink)

    async def clear(self) -> None:
        if self._base.is_dir():
            await asyncio.to_thread(shutil.rmtree, self._base)
        logger.debug("local_storage_cleared", namespace=self._base.name)
