"""
Outcome Tracking
================
Compensating decrements for events whose disposition is known only after
they complete.
"""

from typing import Optional
import structlog

from ..config import FAILURE_STATUS_THRESHOLD
from ..metrics import record_store_error
from ..store.base import SlowDownStore
from .models import Disposition, SlowDownStats

logger = structlog.get_logger(__name__)


class OutcomeTracker:
    """
    Settles one event's disposition and takes its hit back when configured.

    The first disposition signal settles the tracker; any later signal for
    the same event (e.g. an error followed by a close) is ignored, so at
    most one decrement is ever issued per event.
    """

    def __init__(
        self,
        store: SlowDownStore,
        key: str,
        skip_failed_requests: bool = False,
        skip_successful_requests: bool = False,
        stats: Optional[SlowDownStats] = None,
    ):
        self.store = store
        self.key = key
        self.skip_failed_requests = skip_failed_requests
        self.skip_successful_requests = skip_successful_requests
        self.stats = stats or SlowDownStats()
        self.disposition: Optional[Disposition] = None
        self.decremented = False

    @property
    def settled(self) -> bool:
        return self.disposition is not None

    def _should_decrement(self, disposition: Disposition) -> bool:
        if disposition.failed:
            return self.skip_failed_requests
        return self.skip_successful_requests

    async def record(self, disposition: Disposition) -> bool:
        """
        Record the event's disposition.

        Returns:
            True if this call issued the compensating decrement
        """
        if self.settled:
            return False
        self.disposition = disposition

        if not self._should_decrement(disposition):
            return False

        self.decremented = True
        try:
            await self.store.decrement(self.key)
        except Exception as e:
            # The event was already served; the count drifts by one
            self.stats.total_decrement_failures += 1
            record_store_error("decrement")
            logger.warning(
                "slowdown_decrement_failed",
                key=self.key,
                disposition=disposition.value,
                error=str(e),
            )
            return False

        self.stats.total_decrements += 1
        return True

    async def finished(self, status_code: int) -> bool:
        """The response was fully sent with ``status_code``."""
        if status_code >= FAILURE_STATUS_THRESHOLD:
            return await self.record(Disposition.FAILURE)
        return await self.record(Disposition.SUCCESS)

    async def errored(self, exc: Optional[BaseException] = None) -> bool:
        """Handling the event raised."""
        return await self.record(Disposition.FAILURE)

    async def closed(self) -> bool:
        """The connection closed before the response finished."""
        return await self.record(Disposition.ABORTED)
