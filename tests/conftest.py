"""Configuration file for pytest."""

import sys
from pathlib import Path

import pytest

# Add the project root to the path so tests can import modules correctly
sys.path.insert(0, str(Path(__file__).parent.parent))

from httpquery import config  # noqa: E402
from httpquery.config import HttpClientDefaults  # noqa: E402


@pytest.fixture(autouse=True)
def builtin_defaults():
    """Run every test with the built-in defaults, whatever the environment holds."""
    with config._lock:
        previous = config._defaults
        config._defaults = HttpClientDefaults()
    yield config._defaults
    with config._lock:
        config._defaults = previous
