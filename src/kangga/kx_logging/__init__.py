"""Structured logging for the dispatch core."""

from .context import LogContext, log_context, log_trip_context
from .setup import setup_logging

__all__ = [
    "LogContext",
    "log_context",
    "log_trip_context",
    "setup_logging",
]
