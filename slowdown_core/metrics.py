"""
Prometheus Metrics
==================
Metric definitions and recording helpers for slowdown decisions.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry for slowdown metrics
SLOWDOWN_REGISTRY = CollectorRegistry()

SLOWDOWN_EVENTS_TOTAL = Counter(
    name="slowdown_events_total",
    documentation="Events evaluated by the slowdown engine",
    labelnames=["outcome"],  # skipped, passed, delayed
    registry=SLOWDOWN_REGISTRY,
)

SLOWDOWN_DELAY_SECONDS = Histogram(
    name="slowdown_delay_seconds",
    documentation="Delay applied to slowed-down events",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=SLOWDOWN_REGISTRY,
)

SLOWDOWN_LIMIT_REACHED_TOTAL = Counter(
    name="slowdown_limit_reached_total",
    documentation="Keys crossing the delay threshold",
    registry=SLOWDOWN_REGISTRY,
)

SLOWDOWN_STORE_ERRORS_TOTAL = Counter(
    name="slowdown_store_errors_total",
    documentation="Failed counter store operations",
    labelnames=["operation"],
    registry=SLOWDOWN_REGISTRY,
)


def record_decision(delay_ms: float, skipped: bool = False):
    """Record the outcome of one evaluation."""
    if skipped:
        SLOWDOWN_EVENTS_TOTAL.labels(outcome="skipped").inc()
    elif delay_ms > 0:
        SLOWDOWN_EVENTS_TOTAL.labels(outcome="delayed").inc()
        SLOWDOWN_DELAY_SECONDS.observe(delay_ms / 1000)
    else:
        SLOWDOWN_EVENTS_TOTAL.labels(outcome="passed").inc()


def record_limit_reached():
    SLOWDOWN_LIMIT_REACHED_TOTAL.inc()


def record_store_error(operation: str):
    SLOWDOWN_STORE_ERRORS_TOTAL.labels(operation=operation).inc()


def get_metrics_text() -> bytes:
    """Render the slowdown registry in Prometheus exposition format."""
    return generate_latest(SLOWDOWN_REGISTRY)
