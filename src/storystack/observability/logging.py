"""Structured logging configuration for StoryStack.

Engine modules log through structlog loggers that wrap stdlib loggers
under the ``storystack`` namespace. Obtaining a logger never touches
global logging state, so applications that embed the engine keep their
own handlers and levels. Only ``configure_logging`` (called by the CLI)
installs handlers: console output goes through rich and is controlled
by the -v flag, and an optional JSONL file receives every event at
DEBUG level.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

# Module-level state
_file_handler: logging.FileHandler | None = None
_log_file: Path | None = None

_NOISY_LOGGERS = ("asyncio", "markdown_it")

# Events reach stdlib handlers as dicts in record.msg (see JSONLFileHandler)
_PROCESSORS: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes one JSON object per record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, object] = {
                "timestamp": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
            }

            # structlog hands the event dict over in record.msg
            if isinstance(record.msg, dict):
                event_dict = record.msg.copy()
                event_dict.pop("level", None)
                event_dict.pop("timestamp", None)
                entry["message"] = event_dict.pop("event", str(record.msg))
                entry.update(event_dict)
            else:
                entry["message"] = record.getMessage()

            line = json.dumps(entry, default=str) + "\n"
            if self.stream:
                self.stream.write(line)
                self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(verbosity: int = 0, log_file: Path | None = None) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Meant for applications such as the CLI. Library users who already
    configure logging should not call it: it replaces the root handlers.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_file: Optional path of a JSONL file that receives all events.
            Parent directories are created as needed.
    """
    global _file_handler, _log_file

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
        _log_file = None

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level,
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _file_handler = JSONLFileHandler(str(log_file), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        _log_file = log_file
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_file is not None) else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    The logger wraps ``logging.getLogger(name)`` with a fixed processor
    chain, so it neither reads nor changes structlog's global
    configuration and emits nothing until a handler is installed.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.wrap_logger(
        logging.getLogger(name),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    return logger


def get_log_file() -> Path | None:
    """Return the active JSONL log file, or None when file logging is off."""
    return _log_file


def close_file_logging() -> None:
    """Close the JSONL file handler."""
    global _file_handler, _log_file
    if _file_handler:
        _file_handler.close()
        _file_handler = None
        _log_file = None
