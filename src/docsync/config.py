"""
Sync tuning configuration.

Defaults match the reference behaviour of the tool; every value can be
overridden from the environment so scheduled jobs can be tuned without
code changes.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 200
WRITE_CONCURRENCY = 2
METADATA_CONCURRENCY = 99
STATUS_INTERVAL_MS = 500
THROUGHPUT_WINDOW = 30
VOLATILE_FIELDS: tuple[str, ...] = ("_rev",)


def _int_from_env(name: str, default: int) -> int:
    """Read a positive integer from the environment."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e

    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")

    return value


@dataclass(frozen=True)
class SyncSettings:
    """
    Tuning knobs for one sync run.

    Attributes:
        batch_size: Maximum keys per bulk request
        write_concurrency: In-flight bulk data operations per bucket
        metadata_concurrency: In-flight collection/index operations
        status_interval_ms: Progress sampling interval in milliseconds
        throughput_window: Number of samples in the rolling throughput window
        volatile_fields: Record fields excluded from content fingerprints
    """

    batch_size: int = MAX_BATCH_SIZE
    write_concurrency: int = WRITE_CONCURRENCY
    metadata_concurrency: int = METADATA_CONCURRENCY
    status_interval_ms: int = STATUS_INTERVAL_MS
    throughput_window: int = THROUGHPUT_WINDOW
    volatile_fields: tuple[str, ...] = VOLATILE_FIELDS

    def __post_init__(self) -> None:
        for name in (
            "batch_size",
            "write_concurrency",
            "metadata_concurrency",
            "status_interval_ms",
            "throughput_window",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """
        Build settings from environment variables

        Environment variables:
            DOCSYNC_BATCH_SIZE: Keys per bulk request (default: 200)
            DOCSYNC_WRITE_CONCURRENCY: Concurrent bulk writes (default: 2)
            DOCSYNC_METADATA_CONCURRENCY: Concurrent metadata calls (default: 99)
            DOCSYNC_STATUS_INTERVAL_MS: Progress interval (default: 500)
        """
        settings = cls(
            batch_size=_int_from_env("DOCSYNC_BATCH_SIZE", MAX_BATCH_SIZE),
            write_concurrency=_int_from_env("DOCSYNC_WRITE_CONCURRENCY", WRITE_CONCURRENCY),
            metadata_concurrency=_int_from_env(
                "DOCSYNC_METADATA_CONCURRENCY", METADATA_CONCURRENCY
            ),
            status_interval_ms=_int_from_env("DOCSYNC_STATUS_INTERVAL_MS", STATUS_INTERVAL_MS),
        )
        logger.debug(f"Sync settings loaded from environment: {settings}")
        return settings


DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432
DEFAULT_USER = "postgres"


def parse_host(value: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """
    Split "host[:port]" into host and port.

    A scheme prefix such as "postgresql://" is ignored.

    Raises:
        ValueError: If the port is not a valid integer
    """
    value = value.strip()
    if "://" in value:
        value = value.split("://", 1)[1]
    value = value.rstrip("/")

    if not value:
        return DEFAULT_HOST, default_port

    host, sep, port = value.rpartition(":")
    if not sep:
        return value, default_port

    try:
        port_number = int(port)
    except ValueError as e:
        raise ValueError(f"Invalid port in host '{value}'") from e

    if not 0 < port_number < 65536:
        raise ValueError(f"Port out of range in host '{value}'")

    return host or DEFAULT_HOST, port_number


@dataclass(frozen=True)
class ConnectionConfig:
    """Where and as whom to connect for one side of a sync."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user: str = DEFAULT_USER
    password: str = field(default="", repr=False)

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_host_string(
        cls, host: str, user: str = DEFAULT_USER, password: str = ""
    ) -> "ConnectionConfig":
        hostname, port = parse_host(host)
        return cls(host=hostname, port=port, user=user, password=password)
