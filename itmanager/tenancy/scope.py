"""Cancellation scope for calls issued on behalf of one tenant."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any, TypeVar

import structlog

from itmanager.exceptions import StaleTenantContext

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class TaskScope:
    """Tracks in-flight calls so a tenant switch or sign-out can cancel them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._revoked: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def run(self, coro: Awaitable[T]) -> T:
        """Await ``coro`` inside the scope.

        Raises StaleTenantContext if the scope was cancelled while the call
        was in flight. Cancellation of the caller itself propagates unchanged.
        """
        task: asyncio.Task[T] = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            caller_cancelled = current is not None and current.cancelling() > 0
            if task in self._revoked and not caller_cancelled:
                raise StaleTenantContext(
                    "Tenant changed while the request was in flight"
                ) from None
            raise
        finally:
            self._revoked.discard(task)

    def cancel_all(self) -> int:
        """Cancel every in-flight call; returns how many were cancelled."""
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                self._revoked.add(task)
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.info("scope_cancelled", cancelled=cancelled)
        return cancelled
