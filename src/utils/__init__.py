"""
Shared utilities for docsync

Provides:
- logging: structured JSON / console logging
- metrics: Prometheus publishing helpers
- tracing: OpenTelemetry spans
- retry: backoff for transient database connection errors
"""

__all__ = ["logging", "metrics", "tracing", "retry"]
