"""
Slowdown Engine
===============
Turns per-key hit counts into progressively longer response delays.
"""

import asyncio
import dataclasses
import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
import structlog

from ..config import SlowDownConfig
from ..exceptions import ConfigurationError, StoreError
from ..metrics import record_decision, record_limit_reached, record_store_error
from ..store.base import SlowDownStore, StoreCapability
from ..store.in_memory import MemoryStore
from .models import Decision, Disposition, SlowDownStats
from .outcome import OutcomeTracker

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def _resolve(value: Any) -> Any:
    """Await hook results that are awaitable, pass plain values through."""
    if inspect.isawaitable(value):
        return await value
    return value


class SlowDown:
    """
    Progressive slowdown policy.

    Every event counts one hit against its key. Once a key has more than
    ``delay_after`` hits in the current window, each further hit waits
    ``delay_ms`` longer than the previous one, capped at ``max_delay_ms``.
    Events are never rejected.

    Example:
        slow_down = SlowDown(delay_after=5, delay_ms=500)

        decision = await slow_down.evaluate(request)
        if await slow_down.wait(decision):
            return await handler(request)
    """

    def __init__(self, config: Optional[SlowDownConfig] = None, **options):
        if config is None:
            config = SlowDownConfig(**options)
        elif options:
            config = dataclasses.replace(config, **options)

        if config.store is None:
            store = MemoryStore(window_ms=config.window_ms, sweep_interval_ms=config.window_ms)
            config = dataclasses.replace(config, store=store)

        self.config = config
        self.store: SlowDownStore = config.store
        self._stats = SlowDownStats()
        self._validate_store()

    def _validate_store(self):
        """Fail fast when the store cannot serve the configured options."""
        if not isinstance(self.store, SlowDownStore):
            raise ConfigurationError(
                f"Store {type(self.store).__name__} is not a SlowDownStore"
            )

        required = [StoreCapability.INCREMENT, StoreCapability.RESET_KEY]
        if self.config.compensates:
            required.append(StoreCapability.DECREMENT)

        missing = [c.value for c in required if not self.store.supports(c)]
        if missing:
            raise ConfigurationError(
                f"Store {type(self.store).__name__} does not support: {', '.join(missing)}"
            )

    @property
    def metrics(self) -> Dict[str, Any]:
        """Get slowdown engine metrics."""
        return {
            "store": type(self.store).__name__,
            "total_evaluated": self._stats.total_evaluated,
            "total_skipped": self._stats.total_skipped,
            "total_delayed": self._stats.total_delayed,
            "total_limit_reached": self._stats.total_limit_reached,
            "total_store_errors": self._stats.total_store_errors,
            "total_decrements": self._stats.total_decrements,
            "total_decrement_failures": self._stats.total_decrement_failures,
            "total_abandoned": self._stats.total_abandoned,
        }

    def compute_delay(self, current: int, delay_after: int) -> float:
        """Delay in milliseconds for the ``current``-th hit in a window."""
        if current <= delay_after:
            return 0
        return min((current - delay_after) * self.config.delay_ms, self.config.max_delay_ms)

    async def evaluate(self, event: Any) -> Decision:
        """
        Count ``event`` against its key and decide how long it must wait.

        Args:
            event: The incoming request (anything the hooks understand)

        Returns:
            Decision with the threshold, count, remaining allowance,
            window reset time and delay in milliseconds

        Raises:
            StoreError: If the store could not count the event
        """
        self._stats.total_evaluated += 1

        if await _resolve(self.config.skip(event)):
            self._stats.total_skipped += 1
            record_decision(0, skipped=True)
            return Decision.skip()

        key = await _resolve(self.config.key_generator(event))

        try:
            result = await self.store.increment(key)
        except Exception as e:
            self._stats.total_store_errors += 1
            record_store_error("increment")
            logger.error("slowdown_store_error", key=key, operation="increment", error=str(e))
            if isinstance(e, StoreError):
                raise
            raise StoreError(str(e), key=key, operation="increment") from e

        delay_after = self.config.delay_after
        if callable(delay_after):
            delay_after = await _resolve(delay_after(event))

        current = result.count
        delay = self.compute_delay(current, delay_after)

        tracker = None
        if self.config.compensates:
            tracker = OutcomeTracker(
                self.store,
                key,
                skip_failed_requests=self.config.skip_failed_requests,
                skip_successful_requests=self.config.skip_successful_requests,
                stats=self._stats,
            )

        decision = Decision(
            limit=delay_after,
            current=current,
            remaining=max(delay_after - current, 0),
            reset_time=result.reset_time,
            delay=delay,
            key=key,
            tracker=tracker,
        )

        if current - 1 == delay_after:
            self._stats.total_limit_reached += 1
            record_limit_reached()
            logger.info(
                "slowdown_limit_reached",
                key=key,
                limit=delay_after,
                reset_time=result.reset_time,
            )
            await _resolve(self.config.on_limit_reached(event, self.config))

        if delay:
            self._stats.total_delayed += 1
            logger.debug("slowdown_delayed", key=key, current=current, delay_ms=delay)
        record_decision(delay)

        return decision

    async def wait(
        self,
        decision: Decision,
        abandoned: Optional[asyncio.Event] = None,
    ) -> bool:
        """
        Hold the event back for ``decision.delay`` milliseconds.

        Args:
            decision: Result of ``evaluate``
            abandoned: Set when the event is given up before the delay ends

        Returns:
            True if the event may proceed, False if it was abandoned
        """
        if abandoned is not None and abandoned.is_set():
            return False
        if not decision.delay:
            return True

        if abandoned is None:
            await asyncio.sleep(decision.delay / 1000)
            return True

        timer = asyncio.ensure_future(asyncio.sleep(decision.delay / 1000))
        watcher = asyncio.ensure_future(abandoned.wait())
        try:
            await asyncio.wait({timer, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (timer, watcher):
                if not task.done():
                    task.cancel()

        if timer.cancelled() or not timer.done():
            self._stats.total_abandoned += 1
            logger.info("slowdown_delay_abandoned", key=decision.key, delay_ms=decision.delay)
            return False
        return True

    async def handle(
        self,
        event: Any,
        proceed: Callable[[], Awaitable[T]],
        abandoned: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        """
        Evaluate ``event``, wait out its delay, then run ``proceed``.

        ``proceed`` is never called if the event is abandoned during the
        delay; None is returned instead.
        """
        decision = await self.evaluate(event)

        if not await self.wait(decision, abandoned):
            if decision.tracker is not None:
                await decision.tracker.record(Disposition.ABORTED)
            return None

        return await proceed()

    async def reset_key(self, key: str) -> None:
        """Lift any penalty on ``key`` immediately."""
        await self.store.reset_key(key)
        logger.info("slowdown_key_reset", key=key)


def create_slow_down(config: Optional[SlowDownConfig] = None, **options) -> SlowDown:
    """Build a slowdown engine from a config and/or keyword options."""
    return SlowDown(config, **options)
