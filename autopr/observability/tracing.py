"""OpenTelemetry tracing setup and configuration."""

from __future__ import annotations

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = structlog.get_logger(__name__)

_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str = "autopr",
    endpoint: str | None = None,
    enabled: bool = True,
) -> None:
    """Install a tracer provider, exporting over OTLP/HTTP when an endpoint is set.

    Args:
        service_name: Name of the service for trace identification
        endpoint: OTLP endpoint URL (e.g., "http://localhost:4318")
        enabled: Whether to enable tracing
    """
    global _provider

    if not enabled:
        logger.debug("OpenTelemetry tracing disabled by settings")
        return
    if _provider is not None:
        return

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if endpoint:
        if not endpoint.endswith("/v1/traces"):
            endpoint = f"{endpoint.rstrip('/')}/v1/traces"
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info("Tracing configured", service_name=service_name, endpoint=endpoint)


def shutdown_tracing() -> None:
    """Flush pending spans.

    The provider stays installed: OpenTelemetry accepts a global provider only
    once per process, and the SDK shuts it down at interpreter exit.
    """
    if _provider is not None:
        _provider.force_flush()
