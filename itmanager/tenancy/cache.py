"""Tenant-keyed cache for reads issued through the feature services."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class _Entry:
    value: Any
    stored_at: float


class TenantQueryCache:
    """Caches read results per ``(tenant_id, key)``.

    The first element of a key names the entity (``("projects", None)``) and
    is the unit of invalidation after a mutation. With a TTL of zero nothing
    is retained and every read reaches the remote.

    Invalidation bumps a generation counter, so a load that was already in
    flight when its entity was invalidated returns its result to the caller
    but does not store it.
    """

    def __init__(self, ttl_seconds: float = 0.0) -> None:
        self._ttl = ttl_seconds
        self._entries: dict[tuple[str, tuple[Any, ...]], _Entry] = {}
        self._epoch = 0
        self._tenant_generations: dict[str, int] = {}
        self._entity_generations: dict[tuple[str, Any], int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def _fresh(self, entry: _Entry) -> bool:
        return time.monotonic() - entry.stored_at < self._ttl

    def _generation(self, tenant_id: str, key: tuple[Any, ...]) -> tuple[int, int, int]:
        entity = key[0] if key else None
        return (
            self._epoch,
            self._tenant_generations.get(tenant_id, 0),
            self._entity_generations.get((tenant_id, entity), 0),
        )

    def get(self, tenant_id: str, key: tuple[Any, ...]) -> tuple[bool, Any]:
        """Return ``(hit, value)`` for a cached read."""
        entry = self._entries.get((tenant_id, key))
        if entry is None:
            return False, None
        if not self._fresh(entry):
            del self._entries[(tenant_id, key)]
            return False, None
        return True, entry.value

    def set(self, tenant_id: str, key: tuple[Any, ...], value: Any) -> None:
        if not self.enabled:
            return
        self._entries[(tenant_id, key)] = _Entry(value=value, stored_at=time.monotonic())

    async def get_or_load(
        self,
        tenant_id: str,
        key: tuple[Any, ...],
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        hit, value = self.get(tenant_id, key)
        if hit:
            return value
        generation = self._generation(tenant_id, key)
        value = await loader()
        if self._generation(tenant_id, key) == generation:
            self.set(tenant_id, key, value)
        else:
            logger.debug("cache_store_skipped", tenant_id=tenant_id, entity=key[:1])
        return value

    def invalidate(self, tenant_id: str, entity: str | None = None) -> int:
        """Drop a tenant's entries, optionally only those for one entity."""
        if entity is None:
            self._tenant_generations[tenant_id] = self._tenant_generations.get(tenant_id, 0) + 1
        else:
            generation_key = (tenant_id, entity)
            self._entity_generations[generation_key] = (
                self._entity_generations.get(generation_key, 0) + 1
            )
        stale = [
            cache_key
            for cache_key in self._entries
            if cache_key[0] == tenant_id and (entity is None or cache_key[1][:1] == (entity,))
        ]
        for cache_key in stale:
            del self._entries[cache_key]
        if stale:
            logger.debug("cache_invalidated", tenant_id=tenant_id, entity=entity, count=len(stale))
        return len(stale)

    def clear(self) -> None:
        self._epoch += 1
        self._entries.clear()
