"""
Slowdown Configuration
======================
Configuration defaults from environment variables and the options dataclass.
"""

import math
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .exceptions import ConfigurationError


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_max_delay(name: str) -> float:
    value = os.getenv(name, "").strip()
    if not value or value.lower() in ("inf", "infinity"):
        return math.inf
    return float(value)


# Configuration from environment
WINDOW_MS = int(os.getenv("SLOWDOWN_WINDOW_MS", "60000"))
DELAY_AFTER = int(os.getenv("SLOWDOWN_DELAY_AFTER", "1"))
DELAY_MS = int(os.getenv("SLOWDOWN_DELAY_MS", "1000"))
MAX_DELAY_MS = _env_max_delay("SLOWDOWN_MAX_DELAY_MS")  # Unbounded when unset
SKIP_FAILED_REQUESTS = _env_bool("SLOWDOWN_SKIP_FAILED_REQUESTS")
SKIP_SUCCESSFUL_REQUESTS = _env_bool("SLOWDOWN_SKIP_SUCCESSFUL_REQUESTS")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Default excluded paths (health checks, metrics)
DEFAULT_EXCLUDED_PATHS = {"/health", "/ready", "/metrics"}

# Responses at or above this status count as failed
FAILURE_STATUS_THRESHOLD = 400


def default_key_generator(event: Any) -> str:
    """Use the caller's network address as the key."""
    client = getattr(event, "client", None)
    if client:
        return client.host
    return "unknown"


def never_skip(event: Any) -> bool:
    return False


def ignore_limit_reached(event: Any, config: "SlowDownConfig") -> None:
    return None


MaybeAwaitable = Union[Any, Awaitable[Any]]


@dataclass
class SlowDownConfig:
    """Options for a slowdown engine."""
    window_ms: int = WINDOW_MS                # How long a key's window stays open
    delay_after: Union[int, Callable[[Any], MaybeAwaitable]] = DELAY_AFTER
    delay_ms: float = DELAY_MS                # Penalty per hit over delay_after
    max_delay_ms: float = MAX_DELAY_MS        # Cap on the computed delay
    skip_failed_requests: bool = SKIP_FAILED_REQUESTS
    skip_successful_requests: bool = SKIP_SUCCESSFUL_REQUESTS
    key_generator: Callable[[Any], MaybeAwaitable] = default_key_generator
    skip: Callable[[Any], MaybeAwaitable] = never_skip
    on_limit_reached: Callable[[Any, "SlowDownConfig"], MaybeAwaitable] = ignore_limit_reached
    store: Optional[Any] = None               # SlowDownStore; MemoryStore when None

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ConfigurationError(f"window_ms must be positive, got {self.window_ms}")
        if self.delay_ms < 0:
            raise ConfigurationError(f"delay_ms must not be negative, got {self.delay_ms}")
        if self.max_delay_ms < 0:
            raise ConfigurationError(
                f"max_delay_ms must not be negative, got {self.max_delay_ms}"
            )
        if not callable(self.delay_after) and self.delay_after < 0:
            raise ConfigurationError(
                f"delay_after must not be negative, got {self.delay_after}"
            )

    @property
    def compensates(self) -> bool:
        """Whether completed requests may be taken back out of the count."""
        return self.skip_failed_requests or self.skip_successful_requests
