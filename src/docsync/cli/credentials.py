"""
Connection settings resolution for the CLI.

Each value is taken from the first of: the side-specific flag
(--source-user), the shared flag (--user), the side-specific environment
variable (DOCSYNC_SOURCE_USER), the shared environment variable
(DOCSYNC_USER), the built-in default.
"""

import argparse
import dataclasses
import logging
import os

from docsync.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_USER,
    ConnectionConfig,
    SyncSettings,
)

logger = logging.getLogger(__name__)

SIDES = ("source", "target")


def _first(*values: str | None, default: str) -> str:
    for value in values:
        if value is not None and value != "":
            return value
    return default


def resolve_connection(args: argparse.Namespace, side: str) -> ConnectionConfig:
    """
    Resolve host, user and password for one side of the sync

    Args:
        args: Parsed command-line arguments
        side: "source" or "target"

    Returns:
        ConnectionConfig for that side
    """
    if side not in SIDES:
        raise ValueError(f"side must be one of {SIDES}, got {side!r}")

    env = side.upper()

    host = _first(
        getattr(args, f"{side}_host", None),
        os.getenv(f"DOCSYNC_{env}_HOST"),
        default=f"{DEFAULT_HOST}:{DEFAULT_PORT}",
    )
    user = _first(
        getattr(args, f"{side}_user", None),
        getattr(args, "user", None),
        os.getenv(f"DOCSYNC_{env}_USER"),
        os.getenv("DOCSYNC_USER"),
        default=DEFAULT_USER,
    )
    password = _first(
        getattr(args, f"{side}_password", None),
        getattr(args, "password", None),
        os.getenv(f"DOCSYNC_{env}_PASSWORD"),
        os.getenv("DOCSYNC_PASSWORD"),
        default="",
    )

    config = ConnectionConfig.from_host_string(host, user=user, password=password)
    logger.debug(f"Resolved {side} connection: {config}")
    return config


def get_connections(args: argparse.Namespace) -> tuple[ConnectionConfig, ConnectionConfig]:
    """
    Resolve both sides of the sync

    Returns:
        Tuple of (source_config, target_config)
    """
    return resolve_connection(args, "source"), resolve_connection(args, "target")


def get_settings(args: argparse.Namespace) -> SyncSettings:
    """Environment settings with command-line overrides applied."""
    settings = SyncSettings.from_env()

    overrides = {
        name: getattr(args, name)
        for name in ("batch_size", "write_concurrency")
        if getattr(args, name, None) is not None
    }
    return dataclasses.replace(settings, **overrides) if overrides else settings
