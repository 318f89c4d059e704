"""Mutual exclusion for synchronization passes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from recordsync.exceptions import SyncInProgressError


@asynccontextmanager
async def exclusive_pass(lock: asyncio.Lock, name: str) -> AsyncIterator[None]:
    """
    Hold lock for the duration of a pass, refusing to wait for it.

    Raises:
        SyncInProgressError: If another pass already holds the lock
    """
    if lock.locked():
        raise SyncInProgressError(f"{name} is already in progress")
    async with lock:
        yield
