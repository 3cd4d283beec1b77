"""Logging utilities."""

from .logging import StructuredFormatter, configure_logging, log_with_context

__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "log_with_context",
]
