"""
Store Contract
==============
Abstract windowed counter store and its declared capabilities.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import FrozenSet

from .models import IncrementResult


class StoreCapability(str, Enum):
    """Operations a store declares it implements."""
    INCREMENT = "increment"
    DECREMENT = "decrement"
    RESET_KEY = "reset_key"


class SlowDownStore(ABC):
    """
    Per-key windowed counter store.

    Implementations must make each operation atomic per key so that two
    concurrent increments never observe the same pre-increment count.
    Expired windows must behave exactly like absent keys.

    Stores that support retroactive decrements add
    ``StoreCapability.DECREMENT`` to ``capabilities`` and override
    ``decrement``.
    """

    capabilities: FrozenSet[StoreCapability] = frozenset({
        StoreCapability.INCREMENT,
        StoreCapability.RESET_KEY,
    })

    def supports(self, capability: StoreCapability) -> bool:
        return capability in self.capabilities

    @abstractmethod
    async def increment(self, key: str) -> IncrementResult:
        """
        Count one hit for ``key``.

        Args:
            key: Caller identity

        Returns:
            IncrementResult with the new count and the window reset time

        Raises:
            StoreError: If the backend fails
        """

    async def decrement(self, key: str) -> None:
        """Take one hit back out of ``key``'s live window, never below zero."""
        raise NotImplementedError(f"{type(self).__name__} does not support decrement")

    @abstractmethod
    async def reset_key(self, key: str) -> None:
        """Forget ``key``'s window immediately."""
