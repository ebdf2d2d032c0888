"""Login throttle - sliding window of failed attempts per client address"""
import logging
import math
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from domain.errors import RateLimited
from domain.repositories import LoginAttemptStore
from infrastructure.locks import KeyedLockManager
from infrastructure.security import Clock, utcnow

logger = logging.getLogger(__name__)


class LoginThrottle:
    """Rejects login attempts from a client that failed too often recently.

    Keyed by client address rather than by credential, so one client cannot
    spray many accounts and a rejected attempt says nothing about whether
    an account exists.
    """

    def __init__(
        self,
        store: LoginAttemptStore,
        window: timedelta = timedelta(minutes=15),
        max_attempts: int = 5,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLockManager] = None
    ):
        self.store = store
        self.window = window
        self.max_attempts = max_attempts
        self.clock = clock or utcnow
        self.locks = locks or KeyedLockManager(name="login client")

    @asynccontextmanager
    async def attempt(self, client: str) -> AsyncIterator[None]:
        """Run one login attempt of ``client``, checked against the window.

        Attempts of the same client are serialized from the check until the
        failure is recorded, so concurrent requests cannot all slip under
        the ceiling.
        """
        async with self.locks.hold(client):
            await self.check(client)
            yield

    async def check(self, client: str) -> None:
        """Raise RateLimited if ``client`` used up its attempts in the window"""
        now = self.clock()
        attempts = await self.store.attempts_since(client, now - self.window)
        if len(attempts) < self.max_attempts:
            return

        # the client is free again once the oldest counted attempt ages out
        oldest_counted = attempts[-self.max_attempts]
        remaining = (oldest_counted + self.window - now).total_seconds()
        retry_after = max(1, math.ceil(remaining))
        logger.warning(
            "Login rate limit exceeded",
            extra={"client": client, "attempts": len(attempts), "retry_after": retry_after}
        )
        raise RateLimited(retry_after)

    async def record_failure(self, client: str) -> None:
        await self.store.record(client, self.clock())

    async def remaining_attempts(self, client: str) -> int:
        now = self.clock()
        attempts = await self.store.attempts_since(client, now - self.window)
        return max(0, self.max_attempts - len(attempts))
