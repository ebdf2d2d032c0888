import asyncio
from typing import Awaitable, TypeVar

from domain.errors import StoreTimeout

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout_seconds: float, operation: str = "store call") -> T:
    """Await a store call, turning a timeout into a retryable StoreTimeout"""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise StoreTimeout(f"Timed out during {operation}")
