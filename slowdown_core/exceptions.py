"""
Slowdown Exceptions
===================
Exception classes raised by the slowdown engine and its stores.
"""

from typing import Optional


class SlowDownError(Exception):
    """Base exception for all slowdown errors."""
    pass


class ConfigurationError(SlowDownError):
    """Raised at construction when options or store capabilities are invalid."""
    pass


class StoreError(SlowDownError):
    """Raised when a counter store operation fails (e.g. backend unavailable)."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.message = message
        self.key = key
        self.operation = operation
        super().__init__(f"[{operation or 'store'}] {message}")
