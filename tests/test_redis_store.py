"""
Unit Tests for the Redis Store
==============================
Tests for RedisStore against a mocked async Redis client.
"""

import time
import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import ConnectionError as RedisConnectionError, NoScriptError

from slowdown_core.exceptions import StoreError
from slowdown_core.store import (
    DECREMENT_SCRIPT,
    INCREMENT_SCRIPT,
    RedisStore,
    StoreCapability,
)


def make_redis(evalsha_result=None):
    client = MagicMock()
    client.script_load = AsyncMock(side_effect=lambda script: f"sha-{len(script)}")
    client.evalsha = AsyncMock(return_value=evalsha_result)
    client.delete = AsyncMock(return_value=1)
    return client


class TestRedisStore:
    """Tests for RedisStore."""

    @pytest.mark.asyncio
    async def test_increment_returns_count_and_reset_time(self):
        """Should map the script result to count and reset time."""
        client = make_redis(evalsha_result=[3, 45000])
        store = RedisStore(client, window_ms=60000)

        before = time.time()
        result = await store.increment("1.2.3.4")

        assert result.count == 3
        assert before + 45 <= result.reset_time <= time.time() + 45
        client.evalsha.assert_awaited_once_with(
            f"sha-{len(INCREMENT_SCRIPT)}", 1, "slowdown:1.2.3.4", 60000
        )

    @pytest.mark.asyncio
    async def test_script_loaded_once(self):
        """Should load each script only once."""
        client = make_redis(evalsha_result=[1, 60000])
        store = RedisStore(client)

        await store.increment("user1")
        await store.increment("user1")

        client.script_load.assert_awaited_once_with(INCREMENT_SCRIPT)

    @pytest.mark.asyncio
    async def test_reloads_script_after_noscript(self):
        """Should reload the script when Redis lost its script cache."""
        client = make_redis()
        client.evalsha = AsyncMock(side_effect=[NoScriptError("NOSCRIPT"), [1, 60000]])
        store = RedisStore(client)

        result = await store.increment("user1")

        assert result.count == 1
        assert client.script_load.await_count == 2

    @pytest.mark.asyncio
    async def test_decrement_runs_script(self):
        client = make_redis(evalsha_result=0)
        store = RedisStore(client, prefix="test:")

        await store.decrement("user1")

        client.evalsha.assert_awaited_once_with(
            f"sha-{len(DECREMENT_SCRIPT)}", 1, "test:user1"
        )

    @pytest.mark.asyncio
    async def test_reset_key_deletes(self):
        client = make_redis()
        store = RedisStore(client)

        await store.reset_key("user1")

        client.delete.assert_awaited_once_with("slowdown:user1")

    @pytest.mark.asyncio
    async def test_increment_failure_raises_store_error(self):
        """Redis failures should surface as StoreError."""
        client = make_redis()
        client.evalsha = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        store = RedisStore(client)

        with pytest.raises(StoreError) as exc_info:
            await store.increment("user1")

        assert exc_info.value.key == "user1"
        assert exc_info.value.operation == "increment"

    @pytest.mark.asyncio
    async def test_decrement_failure_raises_store_error(self):
        client = make_redis()
        client.evalsha = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        store = RedisStore(client)

        with pytest.raises(StoreError) as exc_info:
            await store.decrement("user1")

        assert exc_info.value.operation == "decrement"

    @pytest.mark.asyncio
    async def test_reset_failure_raises_store_error(self):
        client = make_redis()
        client.delete = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        store = RedisStore(client)

        with pytest.raises(StoreError):
            await store.reset_key("user1")

    def test_declares_decrement(self):
        store = RedisStore(make_redis())

        assert store.supports(StoreCapability.DECREMENT)

    def test_from_url_builds_client(self):
        """from_url should not connect eagerly."""
        store = RedisStore.from_url("redis://localhost:6379/0", window_ms=1000)

        assert store.window_ms == 1000
        assert store.get_key("abc") == "slowdown:abc"
