"""Utility modules for the playground sandbox API."""

from .logging import setup_logging
from .shutdown import ShutdownHandler, shutdown_handler, setup_graceful_shutdown

__all__ = [
    "setup_logging",
    "ShutdownHandler",
    "shutdown_handler",
    "setup_graceful_shutdown",
]
