"""
In-process hold strategy - one asyncio.Lock per entity key.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager

from trip_booking.services.interfaces.hold import HoldStrategy


class LocalHold(HoldStrategy):
    """
    Per-key mutex registry.

    Locks are kept in a WeakValueDictionary: a key's lock lives exactly as
    long as some coroutine holds or waits on it, so the registry does not
    grow with the number of trips and bookings ever touched.

    Use when:
    - A single service process
    - A store without row locks (SQLite in tests)
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: str):
        lock = self._lock_for(key)
        async with lock:
            yield

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
