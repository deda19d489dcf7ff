"""
Prometheus metrics collection for Trust Hierarchies.

Counts what the registry does (events, commands, denials, validations) so a
scrape shows both load and how often delegation requests are refused.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Core Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "hierarchies_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

events_loaded_total = Counter(
    "hierarchies_events_loaded_total",
    "Total number of events loaded from the event store",
    ["stream_type"],
)

stream_version_conflicts_total = Counter(
    "hierarchies_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Command Processing Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "hierarchies_command_duration_seconds",
    "Duration of command processing in seconds",
    ["command_type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

commands_processed_total = Counter(
    "hierarchies_commands_processed_total",
    "Total number of commands processed",
    ["command_type", "status"],  # status: success, failure
)

# ============================================================================
# Authorization Metrics
# ============================================================================

authorization_denials_total = Counter(
    "hierarchies_authorization_denials_total",
    "Total number of rejected operations by error kind",
    ["reason"],
)

statement_validations_total = Counter(
    "hierarchies_statement_validations_total",
    "Total number of statement validations by outcome",
    ["outcome"],  # outcome: valid, invalid_statement, not_accredited
)

federations_total = Gauge(
    "hierarchies_federations_total",
    "Number of federations known to this instance",
)

projection_rebuild_duration_seconds = Histogram(
    "hierarchies_projection_rebuild_duration_seconds",
    "Duration of projection rebuild in seconds",
    ["projection_name"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track command processing duration and outcome.

    Failures are also counted in authorization_denials_total under the
    exception class name.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                status = "failure"
                authorization_denials_total.labels(reason=type(exc).__name__).inc()
                raise
            finally:
                duration = time.perf_counter() - start
                command_duration_seconds.labels(command_type=command_type).observe(duration)
                commands_processed_total.labels(
                    command_type=command_type, status=status
                ).inc()

        return wrapper

    return decorator


def record_validation(outcome: str) -> None:
    """Count one statement validation outcome."""
    statement_validations_total.labels(outcome=outcome).inc()


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server on the given port."""
    start_http_server(port)
