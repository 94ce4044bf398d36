"""
Distributed tracing using OpenTelemetry.

Spans cover a whole sync run, each collection's diff and apply phases
and every bulk write, so slow chunks can be located in a trace viewer.
Nothing is exported unless an OTLP endpoint (or console export) is
configured.
"""

from .context import add_span_attributes, add_span_event, trace_function, trace_operation
from .tracer import get_tracer, initialize_tracing, shutdown_tracing

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "trace_operation",
    "trace_function",
    "add_span_attributes",
    "add_span_event",
]
