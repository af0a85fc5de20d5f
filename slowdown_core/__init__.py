"""
Slowdown Core Library
=====================
Progressive request throttling: delay callers that hit a service too often
instead of rejecting them.
"""

__version__ = "0.1.0"

# Exceptions
from slowdown_core.exceptions import (
    SlowDownError,
    ConfigurationError,
    StoreError,
)

# Configuration
from slowdown_core.config import (
    SlowDownConfig,
    default_key_generator,
)

# Stores
from slowdown_core.store import (
    CounterRecord,
    IncrementResult,
    SlowDownStore,
    StoreCapability,
    MemoryStore,
    RedisStore,
)

# Engine
from slowdown_core.engine import (
    Decision,
    Disposition,
    OutcomeTracker,
    SlowDown,
    create_slow_down,
)

# Middleware
from slowdown_core.middleware import SlowDownMiddleware

# Metrics
from slowdown_core.metrics import get_metrics_text

# Logging
from slowdown_core.log_config import setup_logging

__all__ = [
    # Exceptions
    "SlowDownError",
    "ConfigurationError",
    "StoreError",
    # Configuration
    "SlowDownConfig",
    "default_key_generator",
    # Stores
    "CounterRecord",
    "IncrementResult",
    "SlowDownStore",
    "StoreCapability",
    "MemoryStore",
    "RedisStore",
    # Engine
    "Decision",
    "Disposition",
    "OutcomeTracker",
    "SlowDown",
    "create_slow_down",
    # Middleware
    "SlowDownMiddleware",
    # Metrics
    "get_metrics_text",
    # Logging
    "setup_logging",
]
