"""
Store Models
============
Data models for windowed counter records.
"""

from dataclasses import dataclass


@dataclass
class CounterRecord:
    """Hit count for one key within its current window."""
    key: str
    count: int
    reset_time: float  # Unix timestamp

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_time


@dataclass(frozen=True)
class IncrementResult:
    """Post-increment state returned by a store."""
    count: int
    reset_time: float  # Unix timestamp
