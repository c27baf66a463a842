import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class BatchInFlightError(RuntimeError):
    pass


class SingleFlightGuard:
    """Admits at most one holder; contenders are rejected instead of queued."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        # acquire() does not suspend on an unlocked lock, so check and acquire cannot interleave.
        if self._lock.locked():
            raise BatchInFlightError("BATCH_IN_FLIGHT")
        await self._lock.acquire()
        try:
            yield
        finally:
            self._lock.release()
