"""Pytest configuration and fixtures for scheduler tests."""

import sys
from pathlib import Path

import pytest

# Add API and scheduler paths for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "api"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from emarketer_scheduler.loops import sync_trigger_loop as loop_module


@pytest.fixture(autouse=True)
def reset_shutdown_event():
    """The shutdown event is module-global; clear it around every test."""
    loop_module._shutdown_event.clear()
    yield
    loop_module._shutdown_event.clear()
