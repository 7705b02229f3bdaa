"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def examples_path(project_root: Path) -> Path:
    """Return the directory holding the sample story files."""
    return project_root / "examples"
