"""Utility functions."""

from .logging import setup_logging, get_logger
from .retry import with_retries, is_transient

__all__ = [
    "setup_logging",
    "get_logger",
    "with_retries",
    "is_transient",
]
