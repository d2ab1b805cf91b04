"""Pytest configuration and fixtures for mergemend tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from mergemend.core.log import ConsoleSink, setup_logger


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure console-only logging for the test session.

    Debug output shows up in failing test reports without sending
    anything to logfire.dev.
    """
    test_log_root = Path(tempfile.gettempdir()) / "mergemend-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture
def argv(monkeypatch):
    """Replace sys.argv so settings sources don't see pytest's args."""
    monkeypatch.setattr(sys, "argv", ["mergemend"])
    return sys.argv
