"""Shared test fixtures for boardwalk tests."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def board_dir(tmp_path: Path) -> Path:
    """Create temporary .boardwalk directory."""
    d = tmp_path / ".boardwalk"
    d.mkdir()
    return d


@pytest.fixture
def project_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Change cwd to a fresh project directory for the duration of the test."""
    original_cwd = os.getcwd()
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(original_cwd)


@pytest.fixture
def initialized_board(project_dir: Path) -> Path:
    """Create an initialized .boardwalk directory with a minimal config.

    Returns the .boardwalk path.
    """
    d = project_dir / ".boardwalk"
    (d / "locks").mkdir(parents=True)
    config = """[project]
name = "test-project"

[github]
exec = "echo"

[retry]
max_attempts = 1
base_delay_ms = 0
jitter_ms = 0

[agent]
exec = "true"
"""
    (d / "config.toml").write_text(config)
    return d
