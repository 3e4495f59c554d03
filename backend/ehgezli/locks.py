from __future__ import annotations

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator


class SlotLocks:
    """Process-local mutexes keyed by branch and slot start.

    Holding ``hold(branch_id, starts_at)`` across the whole
    check-capacity-then-write transaction keeps two writers of this process
    from both seeing the same free seats. Locks are dropped once no task
    holds or awaits them.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[int, datetime], asyncio.Lock] = {}
        self._holders: Counter[tuple[int, datetime]] = Counter()

    @staticmethod
    def _key(branch_id: int, starts_at: datetime) -> tuple[int, datetime]:
        return branch_id, starts_at.replace(second=0, microsecond=0, tzinfo=None)

    @asynccontextmanager
    async def hold(self, branch_id: int, starts_at: datetime) -> AsyncIterator[None]:
        key = self._key(branch_id, starts_at)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] <= 0:
                del self._holders[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
