"""
Per-appointment serialization point.

All writes for one appointment (decisions, store attach, expiry,
cancel/complete) run under that appointment's lock; different
appointments never share a lock.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AppointmentLocks:
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, appointment_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(appointment_id, asyncio.Lock())
        self._waiters[appointment_id] = self._waiters.get(appointment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[appointment_id] -= 1
            if self._waiters[appointment_id] == 0:
                # Nobody else queued on it; drop so the registry stays small
                del self._waiters[appointment_id]
                del self._locks[appointment_id]

    def is_locked(self, appointment_id: str) -> bool:
        lock = self._locks.get(appointment_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
