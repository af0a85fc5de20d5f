"""
Windowed Counter Stores
=======================
Per-key hit counters with expiring windows, in memory or in Redis.
"""

from .models import CounterRecord, IncrementResult
from .base import SlowDownStore, StoreCapability
from .in_memory import MemoryStore
from .redis_store import RedisStore, INCREMENT_SCRIPT, DECREMENT_SCRIPT

__all__ = [
    # Models
    "CounterRecord",
    "IncrementResult",
    # Contract
    "SlowDownStore",
    "StoreCapability",
    # Stores
    "MemoryStore",
    "RedisStore",
    # Scripts
    "INCREMENT_SCRIPT",
    "DECREMENT_SCRIPT",
]
