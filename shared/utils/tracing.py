"""
OpenTelemetry tracing setup for directory services.

Provides OTLP exporter configuration, aiohttp client
instrumentation and span helpers for async code.
"""

import os
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.aiohttp_client import AioHttpClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = structlog.get_logger()

TRACER_NAME = "subgraph-directory"


def _build_otlp_exporter_kwargs(endpoint_override: Optional[str] = None) -> Dict[str, Any]:
    endpoint = (
        endpoint_override
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://otel-collector:4317"
    )
    headers_env = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")
    headers: Dict[str, str] = {}
    if headers_env:
        for segment in headers_env.split(","):
            if not segment or "=" not in segment:
                continue
            key, value = segment.split("=", 1)
            key = key.strip()
            if key:
                headers[key] = value.strip()

    exporter_kwargs: Dict[str, Any] = {"endpoint": endpoint}
    if headers:
        exporter_kwargs["headers"] = headers

    if endpoint.startswith("http://"):
        exporter_kwargs["insecure"] = True

    return exporter_kwargs


def setup_tracing(
    service_name: str,
    endpoint: Optional[str] = None,
    enabled: bool = True
) -> None:
    """
    Setup OpenTelemetry tracing for the service.

    Args:
        service_name: Name of the service, recorded as ``service.name``
        endpoint: OTLP endpoint URL, falls back to the standard OTEL env vars
        enabled: Whether tracing is enabled
    """
    if not enabled:
        logger.info("Tracing disabled by configuration")
        return

    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": service_name})
    )
    exporter_kwargs = _build_otlp_exporter_kwargs(endpoint)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(**exporter_kwargs))
    )
    trace.set_tracer_provider(tracer_provider)

    AioHttpClientInstrumentor().instrument()

    logger.info("Tracing setup complete", service=service_name, endpoint=exporter_kwargs["endpoint"])


def get_tracer(name: Optional[str] = None) -> trace.Tracer:
    """Get OpenTelemetry tracer."""
    return trace.get_tracer(name or TRACER_NAME)


def set_span_attribute(key: str, value: Any) -> None:
    """Set attribute on current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)


def add_span_event(name: str, attributes: Optional[Dict[str, Any]] = None) -> None:
    """Add event to current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


@asynccontextmanager
async def trace_async_function(
    name: str,
    attributes: Optional[Dict[str, Any]] = None
):
    """Run the body inside a span, recording any exception on it."""
    with get_tracer().start_as_current_span(name, record_exception=False) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)

        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise
