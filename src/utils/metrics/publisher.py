"""
Metrics publisher for Prometheus HTTP server.

Starts the HTTP server exposing /metrics and publishes build/uptime
information for long-running scheduler processes.
"""

import logging
import time
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Gauge,
    Info,
    start_http_server,
)

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """
    Expose a Prometheus registry on the /metrics endpoint
    """

    def __init__(
        self,
        port: int = 9091,
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize metrics publisher

        Args:
            port: Port to expose metrics on (default: 9091)
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """Start the metrics HTTP server"""
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            if "Address already in use" in str(e):
                logger.error(f"Metrics port {self.port} already in use")
                raise RuntimeError(
                    f"Metrics server port {self.port} is already in use. "
                    f"Stop the conflicting process or pass a different --metrics-port."
                ) from e
            raise

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")

    def is_started(self) -> bool:
        return self._server_started


class ApplicationInfo:
    """
    Build information and process uptime
    """

    def __init__(
        self,
        app_name: str = "docsync",
        version: str = "0.0.0",
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize application info metrics

        Args:
            app_name: Application name
            version: Application version
            registry: Custom Prometheus registry (default: global REGISTRY)
        """
        self.registry = registry or REGISTRY

        self.info = Info(
            f"{app_name}_build",
            "Build metadata",
            registry=self.registry,
        )
        self.info.info({"name": app_name, "version": version})

        self._start_time = time.time()
        self.uptime_seconds = Gauge(
            f"{app_name}_uptime_seconds",
            "Process uptime in seconds",
            registry=self.registry,
        )
        self.uptime_seconds.set_function(self.get_uptime)

    def get_uptime(self) -> float:
        return time.time() - self._start_time
