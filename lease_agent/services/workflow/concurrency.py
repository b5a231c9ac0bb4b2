"""Single-writer-per-request discipline."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from lease_agent.core.exceptions import ConcurrentTransitionError
from lease_agent.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RequestLockRegistry:
    """One lock per lease request id.

    A caller that finds the lock held fails immediately instead of queueing, so the
    loser of a race never applies a transition computed against stale state.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_busy(self, request_id: str) -> bool:
        lock = self._locks.get(request_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, request_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(request_id, asyncio.Lock())
        if lock.locked():
            LOGGER.warning(
                "Rejected concurrent transition",
                extra={"request_id": request_id},
            )
            raise ConcurrentTransitionError(
                f"Another transition for lease request {request_id} is in progress",
                request_id=request_id,
            )
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            if not lock.locked():
                self._locks.pop(request_id, None)
