"""
Slowdown Decision Engine
========================
Counts events per key and delays them progressively once a key crosses
its threshold.

Usage:
    from slowdown_core.engine import SlowDown

    slow_down = SlowDown(delay_after=5, delay_ms=500, max_delay_ms=5000)

    result = await slow_down.handle(request, lambda: call_handler(request))
"""

from .models import Decision, Disposition, SlowDownStats
from .outcome import OutcomeTracker
from .slow_down import SlowDown, create_slow_down

__all__ = [
    # Models
    "Decision",
    "Disposition",
    "SlowDownStats",
    # Outcome
    "OutcomeTracker",
    # Engine
    "SlowDown",
    "create_slow_down",
]
