"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest
from rich.console import Console

from macstrap.reporting import Reporter


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the operator's own config and ``MACSTRAP_*`` variables out of tests."""
    for key in list(os.environ):
        if key.startswith("MACSTRAP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("MACSTRAP_CONFIG_FILE", str(tmp_path / "absent-config.yml"))
    monkeypatch.setenv("MACSTRAP_LOGS_DIR", str(tmp_path / "logs"))


@pytest.fixture
def console_buffer() -> io.StringIO:
    """Return the buffer backing the :func:`reporter` fixture."""
    return io.StringIO()


@pytest.fixture
def reporter(console_buffer: io.StringIO) -> Reporter:
    """Return a reporter that writes plain text into ``console_buffer``."""
    console = Console(file=console_buffer, width=200, color_system=None, force_terminal=False)
    return Reporter(console)
