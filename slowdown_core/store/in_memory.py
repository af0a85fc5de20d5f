"""
In-Memory Store
===============
Reference windowed counter store kept in process memory.
"""

import asyncio
import time
from typing import Callable, Dict, Optional
import structlog

from .base import SlowDownStore, StoreCapability
from .models import CounterRecord, IncrementResult

logger = structlog.get_logger(__name__)


class MemoryStore(SlowDownStore):
    """
    In-memory windowed counter store.

    Counts live only as long as the process. Use RedisStore to share
    counts across instances.
    """

    capabilities = frozenset({
        StoreCapability.INCREMENT,
        StoreCapability.DECREMENT,
        StoreCapability.RESET_KEY,
    })

    def __init__(
        self,
        window_ms: int = 60000,
        clock: Callable[[], float] = time.time,
        sweep_interval_ms: Optional[int] = None,
    ):
        """
        Args:
            window_ms: Window length in milliseconds
            clock: Returns the current Unix timestamp
            sweep_interval_ms: Drop expired records at most this often (None = never)
        """
        self.window_ms = window_ms
        self.sweep_interval_ms = sweep_interval_ms
        self._clock = clock
        self._records: Dict[str, CounterRecord] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._records)

    def _live_record(self, key: str, now: float) -> Optional[CounterRecord]:
        record = self._records.get(key)
        if record is not None and record.is_expired(now):
            del self._records[key]
            return None
        return record

    def _sweep_locked(self, now: float) -> int:
        expired = [
            key for key, record in self._records.items()
            if record.is_expired(now)
        ]
        for key in expired:
            del self._records[key]
        self._last_sweep = now
        return len(expired)

    async def increment(self, key: str) -> IncrementResult:
        async with self._lock:
            now = self._clock()

            if (
                self.sweep_interval_ms is not None
                and (now - self._last_sweep) * 1000 >= self.sweep_interval_ms
            ):
                removed = self._sweep_locked(now)
                if removed:
                    logger.debug("slowdown_store_swept", removed=removed)

            record = self._live_record(key, now)
            if record is None:
                record = CounterRecord(
                    key=key,
                    count=0,
                    reset_time=now + self.window_ms / 1000,
                )
                self._records[key] = record

            record.count += 1
            return IncrementResult(count=record.count, reset_time=record.reset_time)

    async def decrement(self, key: str) -> None:
        async with self._lock:
            record = self._live_record(key, self._clock())
            if record is not None and record.count > 0:
                record.count -= 1

    async def reset_key(self, key: str) -> None:
        async with self._lock:
            self._records.pop(key, None)

    async def get(self, key: str) -> Optional[CounterRecord]:
        """Return the live record for ``key``, or None if absent or expired."""
        async with self._lock:
            return self._live_record(key, self._clock())

    async def sweep(self) -> int:
        """Remove all expired records. Returns how many were dropped."""
        async with self._lock:
            return self._sweep_locked(self._clock())
