"""Per-key de-duplication of concurrent async operations."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, TypeVar

T = TypeVar("T")


class InflightRegistry(Generic[T]):
    """Share one pending task per key among concurrent callers.

    The first caller for a key starts the operation; callers arriving while it
    is pending await the same task instead of starting their own. Once the
    task settles the key is released, so the next call starts fresh.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Task[T]] = {}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        # Shielded so one caller being cancelled does not cancel the others.
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[T]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Every caller may have been cancelled before the task failed; nobody
        # else will retrieve the exception.
        if not task.cancelled():
            task.exception()


__all__ = ["InflightRegistry"]
