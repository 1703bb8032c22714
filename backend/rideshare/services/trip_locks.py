"""
Per-trip mutual exclusion for seat-inventory mutations.

Every reserve / confirm / cancel / edit / delete on a trip runs its
read-check-write sequence while holding that trip's lock, so two passengers
racing for the last seat are processed one after the other. Different trips
get different locks and never wait on each other.

Locks live only while someone holds or waits for them, which keeps the
registry small and avoids reusing a lock across event loops.

This serializes callers inside one process. Across processes the versioned
UPDATE in booking_service is what keeps the inventory consistent.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from rideshare.core.config import get_settings
from rideshare.core.exceptions import TripBusyError
from rideshare.core.logging import get_logger
from rideshare.core.metrics import trip_lock_wait

logger = get_logger(__name__)


class TripLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, trip_id: int) -> bool:
        lock = self._locks.get(trip_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, trip_id: int, timeout: Optional[float] = None) -> AsyncIterator[None]:
        if timeout is None:
            timeout = get_settings().TRIP_LOCK_TIMEOUT_SECONDS

        lock = self._locks.setdefault(trip_id, asyncio.Lock())
        self._users[trip_id] = self._users.get(trip_id, 0) + 1
        started = time.perf_counter()
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("trip_lock_timeout", trip_id=trip_id, timeout=timeout)
                raise TripBusyError(trip_id)
            trip_lock_wait.observe(time.perf_counter() - started)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[trip_id] -= 1
            if self._users[trip_id] == 0:
                del self._users[trip_id]
                self._locks.pop(trip_id, None)


trip_locks = TripLockRegistry()
