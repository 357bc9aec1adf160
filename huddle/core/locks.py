"""
Process-local, per-group mutation locks.
Every write to a group's comment set (create, reply, cascade delete,
group dissolution) runs while holding that group's lock, so the group
comment index never observes a half-applied mutation.
"""
from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class GroupLockRegistry:

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._holders: dict[uuid.UUID, int] = {}

    @asynccontextmanager
    async def hold(self, group_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = self._locks[group_id] = asyncio.Lock()
        self._holders[group_id] = self._holders.get(group_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[group_id] -= 1
            if self._holders[group_id] == 0:
                # nobody waiting: drop the entry so the registry stays bounded
                del self._holders[group_id]
                del self._locks[group_id]

    def is_locked(self, group_id: uuid.UUID) -> bool:
        lock = self._locks.get(group_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Global, process-local singleton
group_locks = GroupLockRegistry()
