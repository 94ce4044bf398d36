"""
Context managers and utilities for span management.
"""

import functools
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace

from .tracer import get_tracer


def _attribute_value(value: Any) -> Any:
    # OTel accepts primitives as-is; everything else is stringified
    if isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes
):
    """
    Context manager for tracing operations.

    Creates a span, adds attributes, and records any exception raised
    inside the block before re-raising it.

    Args:
        operation_name: Name of the operation being traced
        kind: Span kind (INTERNAL, CLIENT, SERVER, etc.)
        **attributes: Custom attributes to add to the span

    Yields:
        Span instance for adding custom events/attributes

    Example:
        >>> with trace_operation("docsync.collection", collection="users") as span:
        ...     summary = sync_one("users")
        ...     span.set_attribute("docsync.created", summary.created)
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(operation_name, kind=kind) as span:
        for key, value in attributes.items():
            span.set_attribute(key, _attribute_value(value))

        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))
            span.record_exception(e)
            raise


def add_span_attributes(**attributes) -> None:
    """Add attributes to the current span."""
    current_span = trace.get_current_span()
    if current_span.is_recording():
        for key, value in attributes.items():
            current_span.set_attribute(key, _attribute_value(value))


def add_span_event(name: str, **attributes) -> None:
    """
    Add an event to the current span.

    Events mark discrete moments (phase changes, aborted chunks) inside a
    span.

    Args:
        name: Event name
        **attributes: Event attributes
    """
    current_span = trace.get_current_span()
    if current_span.is_recording():
        current_span.add_event(
            name, attributes={k: _attribute_value(v) for k, v in attributes.items()}
        )


def trace_function(operation_name: str | None = None, **default_attributes):
    """Wrap every call of the decorated function in a trace_operation span."""
    def decorator(func):
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with trace_operation(name, function=func.__name__, **default_attributes):
                return func(*args, **kwargs)

        return wrapper
    return decorator
