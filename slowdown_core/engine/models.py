"""
Decision Models
===============
Per-event decision metadata and request dispositions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .outcome import OutcomeTracker


class Disposition(str, Enum):
    """How an event eventually ended."""
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"    # Connection dropped or transport error

    @property
    def failed(self) -> bool:
        return self is not Disposition.SUCCESS


@dataclass(frozen=True)
class Decision:
    """Slowdown decision for one event."""
    limit: int
    current: int
    remaining: int
    reset_time: Optional[float]  # Unix timestamp, None when skipped
    delay: float                 # Milliseconds
    skipped: bool = False
    key: Optional[str] = field(default=None, repr=False, compare=False)
    tracker: Optional["OutcomeTracker"] = field(default=None, repr=False, compare=False)

    @classmethod
    def skip(cls) -> "Decision":
        """Placeholder for bypassed events; counts are meaningless, check ``skipped``."""
        return cls(limit=0, current=0, remaining=0, reset_time=None, delay=0, skipped=True)

    @property
    def delayed(self) -> bool:
        return self.delay > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "current": self.current,
            "remaining": self.remaining,
            "reset_time": self.reset_time,
            "delay": self.delay,
        }


@dataclass
class SlowDownStats:
    """Runtime totals of a slowdown engine."""
    total_evaluated: int = 0
    total_skipped: int = 0
    total_delayed: int = 0
    total_limit_reached: int = 0
    total_store_errors: int = 0
    total_decrements: int = 0
    total_decrement_failures: int = 0
    total_abandoned: int = 0
