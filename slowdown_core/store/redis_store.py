"""
Redis Store
===========
Redis-backed windowed counter store using Lua scripts for atomic operations.
"""

import time
from typing import Dict, Optional
import redis.asyncio as redis
from redis.exceptions import NoScriptError, RedisError
import structlog

from ..config import REDIS_URL
from ..exceptions import StoreError
from .base import SlowDownStore, StoreCapability
from .models import IncrementResult

logger = structlog.get_logger(__name__)

# Lua script for an atomic windowed increment
INCREMENT_SCRIPT = """
local key = KEYS[1]
local window_ms = tonumber(ARGV[1])

local count = redis.call('INCR', key)
local ttl = redis.call('PTTL', key)

if count == 1 or ttl < 0 then
    redis.call('PEXPIRE', key, window_ms)
    ttl = window_ms
end

return {count, ttl}
"""

# Lua script for a decrement that never drops below zero
DECREMENT_SCRIPT = """
local key = KEYS[1]

local count = tonumber(redis.call('GET', key))
if count and count > 0 then
    return redis.call('DECR', key)
end

return 0
"""


class RedisStore(SlowDownStore):
    """
    Redis-backed windowed counter store.

    Windows expire through native key expiry, so counts are shared by
    every instance pointed at the same Redis.
    """

    capabilities = frozenset({
        StoreCapability.INCREMENT,
        StoreCapability.DECREMENT,
        StoreCapability.RESET_KEY,
    })

    def __init__(self, redis_client, window_ms: int = 60000, prefix: str = "slowdown:"):
        """
        Args:
            redis_client: Async Redis client
            window_ms: Window length in milliseconds
            prefix: Namespace prepended to every key
        """
        self.redis = redis_client
        self.window_ms = window_ms
        self.prefix = prefix
        self._script_shas: Dict[str, Optional[str]] = {
            INCREMENT_SCRIPT: None,
            DECREMENT_SCRIPT: None,
        }

    @classmethod
    def from_url(
        cls,
        url: str = REDIS_URL,
        window_ms: int = 60000,
        prefix: str = "slowdown:",
    ) -> "RedisStore":
        """Build a store with its own connection pool."""
        return cls(redis.from_url(url, decode_responses=True), window_ms=window_ms, prefix=prefix)

    def get_key(self, key: str) -> str:
        """Generate the Redis key for a caller key."""
        return f"{self.prefix}{key}"

    async def _ensure_script(self, script: str) -> str:
        """Load Lua script into Redis if needed."""
        sha = self._script_shas.get(script)
        if sha is None:
            sha = await self.redis.script_load(script)
            self._script_shas[script] = sha
        return sha

    async def _run_script(self, script: str, key: str, *args):
        sha = await self._ensure_script(script)
        try:
            return await self.redis.evalsha(sha, 1, self.get_key(key), *args)
        except NoScriptError:
            # Script cache was flushed on the server
            self._script_shas[script] = None
            sha = await self._ensure_script(script)
            return await self.redis.evalsha(sha, 1, self.get_key(key), *args)

    async def increment(self, key: str) -> IncrementResult:
        try:
            count, ttl_ms = await self._run_script(INCREMENT_SCRIPT, key, self.window_ms)
        except RedisError as e:
            logger.error("slowdown_redis_increment_failed", key=key, error=str(e))
            raise StoreError(str(e), key=key, operation="increment") from e

        return IncrementResult(
            count=int(count),
            reset_time=time.time() + int(ttl_ms) / 1000,
        )

    async def decrement(self, key: str) -> None:
        try:
            await self._run_script(DECREMENT_SCRIPT, key)
        except RedisError as e:
            logger.error("slowdown_redis_decrement_failed", key=key, error=str(e))
            raise StoreError(str(e), key=key, operation="decrement") from e

    async def reset_key(self, key: str) -> None:
        try:
            await self.redis.delete(self.get_key(key))
        except RedisError as e:
            logger.error("slowdown_redis_reset_failed", key=key, error=str(e))
            raise StoreError(str(e), key=key, operation="reset_key") from e
