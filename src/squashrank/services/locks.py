# src/squashrank/services/locks.py

"""In-process mutual exclusion for rating writes."""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class PlayerLocks:
    """One asyncio.Lock per player ID, created on demand.

    Locks are always taken in ascending ID order so two operations that
    share a player can never wait on each other in a cycle. Entries vanish
    once no operation holds a reference to them.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, player_id: int) -> asyncio.Lock:
        lock = self._locks.get(player_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[player_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *player_ids: int) -> AsyncIterator[None]:
        locks = [self._lock_for(pid) for pid in sorted(set(player_ids))]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


player_locks = PlayerLocks()
