"""Shared test fixtures for dbauth.

Provides isolated config and data directories, a clean ``DATABRICKS_*``
environment, a controllable clock, a profile-file writer, and a CLI
runner. Discovered automatically by pytest.
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from dbauth.config import ENVIRONMENT_VARIABLES, Settings
from dbauth.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches sys.stdout/sys.stderr at creation time, and
    CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every recognised ``DATABRICKS_*`` variable for the test."""
    for var in ENVIRONMENT_VARIABLES.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate config, data and home directories under ``tmp_path``.

    Returns:
        The tmp_path root directory.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr("dbauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Profile files
# ---------------------------------------------------------------------------


@pytest.fixture
def write_profiles(tmp_path: Path) -> Callable[[str], Path]:
    """Return a writer that stores dedented profile-file text and returns its path."""

    def _write(text: str, name: str = "databrickscfg") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Clock and settings
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock for token-expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(refresh_threshold_seconds=40, max_retries=2, max_refresh_attempts=3)


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
