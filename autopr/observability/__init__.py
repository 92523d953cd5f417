"""Observability utilities for autopr.

Provides structured logging, OpenTelemetry tracing, and metrics collection.
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, TypeVar

import structlog
from opentelemetry import trace
from prometheus_client import Counter, Histogram, start_http_server

from autopr.observability.logging import setup_logging
from autopr.observability.tracing import setup_tracing

__all__ = [
    "COMMAND_COUNT",
    "REMOTE_CALL_DURATION",
    "SESSION_COUNT",
    "setup_logging",
    "setup_metrics",
    "setup_tracing",
    "span",
    "timed",
]

F = TypeVar("F", bound=Callable[..., Any])

SESSION_COUNT = Counter(
    "autopr_sessions_total",
    "Session lifecycle events",
    ["event_type"],  # opened, closed, rejected
)

COMMAND_COUNT = Counter(
    "autopr_commands_total", "Commands handled per session", ["command", "status"]
)

REMOTE_CALL_DURATION = Histogram(
    "autopr_remote_call_duration_seconds",
    "Duration of calls to the repository service and suggestion engine",
    ["service", "operation"],
)

_metrics_started = False


def setup_metrics(port: int = 9090, enabled: bool = True) -> None:
    """Start Prometheus metrics server.

    Args:
        port: Port to expose metrics on
        enabled: Whether to enable metrics server
    """
    global _metrics_started
    logger = structlog.get_logger()

    if not enabled:
        logger.debug("Prometheus metrics disabled by settings")
        return
    if _metrics_started:
        return

    start_http_server(port)
    _metrics_started = True
    logger.info("Prometheus metrics exporter started", port=port)


def timed(service: str, operation: str) -> Callable[[F], F]:
    """Decorator recording call duration in REMOTE_CALL_DURATION.

    Example:
        @timed("github", "get_branch_head")
        async def get_branch_head(self, branch: str) -> str:
            ...
    """

    def decorator(func: F) -> F:
        metric = REMOTE_CALL_DURATION.labels(service=service, operation=operation)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                metric.observe(time.perf_counter() - start)

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                metric.observe(time.perf_counter() - start)

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper  # type: ignore

    return decorator


@contextmanager
def span(name: str, attributes: dict[str, Any] | None = None):
    """Context manager for creating a trace span.

    Example:
        with span("create_branch", {"branch": name}):
            await client.create_branch(name, sha)
    """
    tracer = trace.get_tracer("autopr")
    with tracer.start_as_current_span(name) as span_obj:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span_obj.set_attribute(key, value)
        yield span_obj
