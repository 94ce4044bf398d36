"""
Tracer initialization and configuration for OpenTelemetry.
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "docsync"

_tracer: trace.Tracer | None = None
_provider: TracerProvider | None = None


def initialize_tracing(
    service_name: str = DEFAULT_SERVICE_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    sampling_rate: float = 1.0,
) -> trace.Tracer:
    """
    Initialize distributed tracing with OpenTelemetry.

    Args:
        service_name: Name of the service for identification
        otlp_endpoint: OTLP collector endpoint (e.g., "localhost:4317");
            falls back to the OTLP_ENDPOINT environment variable
        console_export: If True, also export traces to stdout (debug)
        sampling_rate: Sampling rate 0.0-1.0 (1.0 = trace everything)

    Returns:
        Configured tracer instance
    """
    global _tracer, _provider

    if _provider is not None:
        logger.warning("Tracing already initialized, returning existing tracer")
        return _tracer

    if not 0.0 <= sampling_rate <= 1.0:
        raise ValueError(f"sampling_rate must be between 0 and 1, got {sampling_rate}")

    provider = TracerProvider(
        resource=Resource(attributes={SERVICE_NAME: service_name}),
        sampler=TraceIdRatioBased(sampling_rate),
    )

    exporters = []

    otlp_endpoint = otlp_endpoint or os.getenv("OTLP_ENDPOINT")
    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
        exporters.append("OTLP")
        logger.info(f"OTLP exporter configured: {otlp_endpoint}")

    if console_export or os.getenv("TRACE_CONSOLE", "").lower() == "true":
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        exporters.append("Console")

    if not exporters:
        logger.debug("No trace exporters configured, spans will not be exported")

    trace.set_tracer_provider(provider)

    _provider = provider
    _tracer = trace.get_tracer(service_name)

    logger.info(
        f"Tracing initialized: {service_name} "
        f"(exporters: {', '.join(exporters) or 'none'}, sampling: {sampling_rate})"
    )

    return _tracer


def get_tracer() -> trace.Tracer:
    """
    Get the tracer used for docsync spans.

    Before initialize_tracing() runs this returns the global (no-op by
    default) tracer, so library callers never install exporters implicitly.
    """
    if _tracer is not None:
        return _tracer
    return trace.get_tracer(DEFAULT_SERVICE_NAME)


def shutdown_tracing() -> None:
    """
    Flush pending spans and shut the provider down.

    Should be called before application exit.
    """
    global _tracer, _provider

    if _provider is None:
        return

    try:
        _provider.shutdown()
        logger.info("Tracing shutdown complete")
    except Exception as e:
        logger.error(f"Error during tracing shutdown: {e}")
    finally:
        _provider = None
        _tracer = None
