"""Observability module for StoryStack.

Provides structured logging on top of structlog and rich.
"""

from storystack.observability.logging import (
    close_file_logging,
    configure_logging,
    get_log_file,
    get_logger,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_log_file",
    "get_logger",
]
