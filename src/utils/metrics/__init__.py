"""
Prometheus metrics publishing

Usage:
    from utils.metrics import MetricsPublisher, get_or_create_metric

    publisher = MetricsPublisher(port=9091)
    publisher.start()
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import REGISTRY, CollectorRegistry

from .publisher import ApplicationInfo, MetricsPublisher

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under the name.

    Module reloads (tests, scheduled re-imports) would otherwise fail with
    a duplicate timeseries ValueError.

    Args:
        metric_factory: Callable that creates the metric (e.g., lambda: Counter(...))
        metric_name: Name the metric is registered under
        registry: Prometheus registry to use (default: global REGISTRY)

    Returns:
        The metric instance (either newly created or existing)

    Example:
        SCANNED = get_or_create_metric(
            lambda: Counter("docsync_records_scanned_total", "Records scanned", ["collection"]),
            "docsync_records_scanned_total",
        )
    """
    try:
        return metric_factory()
    except ValueError:
        # Counters register under both `name` and `name_total`
        for candidate in (metric_name, metric_name.removesuffix("_total")):
            existing = registry._names_to_collectors.get(candidate)
            if existing is not None:
                return existing
        raise


__all__ = [
    "MetricsPublisher",
    "ApplicationInfo",
    "get_or_create_metric",
]
