"""Optional OpenTelemetry tracing for the API and its Spotify calls.

Only wired when OBSERVABILITY_ENABLE_TRACING is set. The two aggregation modes open
their own spans, so a slow search shows up as one request span with a child span per
Spotify page.
"""

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from spotlens import __version__

logger = logging.getLogger(__name__)


def configure_tracing(
    service_name: str = "spotlens",
    environment: str = "development",
    otlp_endpoint: str | None = None,
    enable_console_exporter: bool = False,
) -> TracerProvider:
    """Install a global tracer provider tagged with the service identity.

    Args:
        service_name: service.name resource attribute
        environment: deployment.environment resource attribute
        otlp_endpoint: gRPC collector address, e.g. "http://localhost:4317". When unset,
            development prints spans to stdout and other environments export nothing
        enable_console_exporter: Print spans to stdout regardless of environment

    Returns:
        The installed provider
    """
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "deployment.environment": environment,
        }
    )

    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(f"OTLP trace exporter configured: {otlp_endpoint}")

    if enable_console_exporter or (not otlp_endpoint and environment == "development"):
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console trace exporter enabled")

    trace.set_tracer_provider(provider)

    logger.info(
        "Tracing configured",
        extra={
            "service_name": service_name,
            "environment": environment,
            "otlp_endpoint": otlp_endpoint,
        },
    )

    return provider


def instrument_fastapi(app: Any) -> None:
    """Open a server span for every incoming request."""
    FastAPIInstrumentor.instrument_app(app)
    logger.info("FastAPI instrumented with OpenTelemetry")


# Every Spotify call then gets its own child span under the request span
def instrument_httpx() -> None:
    """Open a client span for every outgoing httpx request."""
    HTTPXClientInstrumentor().instrument()
    logger.info("HTTPX client instrumented with OpenTelemetry")
