"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

import storystack.observability.logging as log_module
from storystack.observability import (
    close_file_logging,
    configure_logging,
    get_log_file,
    get_logger,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    configure_logging(verbosity=0)


def test_default_verbosity_is_warning() -> None:
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_verbose_opens_root_logger() -> None:
    """Root level drops to DEBUG so the console handler does the filtering."""
    configure_logging(verbosity=1)

    assert logging.getLogger().level == logging.DEBUG


def test_get_logger_leaves_root_logger_alone() -> None:
    root = logging.getLogger()
    handlers_before = list(root.handlers)
    level_before = root.level

    logger = get_logger("storystack.test")
    logger.debug("nothing_configured")

    assert root.handlers == handlers_before
    assert root.level == level_before
    assert hasattr(logger, "info")


def test_importing_engine_keeps_host_logging(project_root: Path) -> None:
    """An application that set up logging first keeps its handlers and level."""
    script = textwrap.dedent(
        """
        import logging
        import sys

        host = logging.StreamHandler(sys.stdout)
        root = logging.getLogger()
        root.addHandler(host)
        root.setLevel(logging.INFO)

        import storystack.graph.analysis
        import storystack.render

        print(host in root.handlers, logging.getLevelName(root.level))
        """
    )
    env = {**os.environ, "PYTHONPATH": str(project_root / "src")}

    result = subprocess.run(
        [sys.executable, "-c", script],
        capture_output=True,
        text=True,
        env=env,
        check=True,
    )

    assert result.stdout.strip() == "True INFO"


def test_engine_events_reach_host_handlers(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="storystack"):
        get_logger("storystack.graph.analysis").info("story_analyzed", cards=2)

    assert any(
        isinstance(r.msg, dict) and r.msg.get("event") == "story_analyzed" for r in caplog.records
    )


def test_noisy_loggers_are_quieted() -> None:
    configure_logging(verbosity=2)

    assert logging.getLogger("asyncio").level == logging.WARNING


def test_log_file_is_created(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "storystack.jsonl"

    configure_logging(verbosity=0, log_file=log_file)

    assert log_file.parent.is_dir()
    assert get_log_file() == log_file


def test_no_log_file_by_default() -> None:
    configure_logging(verbosity=0)

    assert get_log_file() is None


def test_reconfiguration_closes_previous_handler(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_file=tmp_path / "first.jsonl")
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_file=tmp_path / "second.jsonl")

    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._file_handler is not None


def test_close_file_logging_clears_handler(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_file=tmp_path / "run.jsonl")

    close_file_logging()

    assert log_module._file_handler is None
    assert get_log_file() is None


def test_jsonl_handler_writes_event_context(tmp_path: Path) -> None:
    log_file = tmp_path / "run.jsonl"
    configure_logging(verbosity=0, log_file=log_file)

    get_logger("test.context").info("story_checked", cards=3, story="cave")
    close_file_logging()

    entries = [json.loads(line) for line in log_file.read_text().splitlines()]
    entry = next(e for e in entries if e.get("message") == "story_checked")
    assert entry["cards"] == 3
    assert entry["story"] == "cave"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "test.context"
