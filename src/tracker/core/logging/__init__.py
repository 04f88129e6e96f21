"""Structured logging and request tracking."""

from tracker.core.logging.config import configure_logging
from tracker.core.logging.middleware import RequestLoggingMiddleware


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
]
