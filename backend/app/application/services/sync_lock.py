"""Per-owner in-process lease serializing sync runs for the same owner."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class OwnerLockRegistry:
    """Hands out one asyncio.Lock per owner.

    A second sync for an owner waits for the first to finish instead of
    interleaving its upserts. Locks are not shared across processes.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def is_locked(self, owner_id: str) -> bool:
        lock = self._locks.get(owner_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, owner_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(owner_id, asyncio.Lock())
        async with lock:
            yield
