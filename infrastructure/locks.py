"""Keyed mutual exclusion for check-then-write sequences"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Iterable, List

from domain.errors import StoreTimeout

logger = logging.getLogger(__name__)


class KeyedLockManager:
    """Hands out one asyncio.Lock per key.

    A check and the write that depends on it must run under the key's lock,
    otherwise two concurrent requests can both pass the check.
    """

    def __init__(self, timeout_seconds: float = 5.0, name: str = "resource"):
        self.timeout_seconds = timeout_seconds
        self.name = name
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, *keys: Hashable) -> AsyncIterator[None]:
        """Hold the locks of every given key, acquired in a fixed order"""
        acquired: List[asyncio.Lock] = []
        try:
            for key in self._ordered(keys):
                lock = self._lock_for(key)
                try:
                    # a cancelled acquire never leaves the lock held
                    async with asyncio.timeout(self.timeout_seconds):
                        await lock.acquire()
                except TimeoutError:
                    logger.warning("Timed out waiting for %s lock", self.name, extra={"key": str(key)})
                    raise StoreTimeout(f"The {self.name} is busy, please retry")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    @staticmethod
    def _ordered(keys: Iterable[Hashable]) -> List[Hashable]:
        return sorted(set(keys), key=str)


class RoomLockManager(KeyedLockManager):
    """One lock per room, held across a booking's conflict check and write"""

    def __init__(self, timeout_seconds: float = 5.0):
        super().__init__(timeout_seconds, name="room")
