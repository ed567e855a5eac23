"""Logging utilities."""

import logging
import os
import sys
from typing import Optional

LOGGER_NAME = "crossbranch"

# GitHub Actions workflow commands, rendered as run annotations
ANNOTATIONS = {
    logging.WARNING: "::warning::",
    logging.ERROR: "::error::",
    logging.CRITICAL: "::error::",
}


class ActionsFormatter(logging.Formatter):
    """Prefix warnings and errors with GitHub Actions annotation commands."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = ANNOTATIONS.get(record.levelno)
        if prefix is None:
            return message
        # Annotations are single-line
        return prefix + message.replace("\n", "%0A")


def running_in_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


def setup_logging(
    level: int = logging.INFO,
    format_str: Optional[str] = None,
    annotate: Optional[bool] = None
) -> logging.Logger:
    """
    Setup logging for the validator.

    Logs go to stderr so that ``--json`` output on stdout stays parseable.

    Args:
        level: Logging level (default: INFO)
        format_str: Custom format string
        annotate: Emit Actions annotations (default: when GITHUB_ACTIONS=true)

    Returns:
        Configured logger
    """
    if format_str is None:
        format_str = "[%(asctime)s] %(levelname)s - %(message)s"
    if annotate is None:
        annotate = running_in_actions()

    handler = logging.StreamHandler(sys.stderr)
    formatter_cls = ActionsFormatter if annotate else logging.Formatter
    handler.setFormatter(formatter_cls(format_str))

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
