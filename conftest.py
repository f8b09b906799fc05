"""Root-level pytest configuration and shared fixtures."""

import os
import pytest


@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Keep MAATOOLS_* settings from the developer's shell out of the tests."""
    original_env = os.environ.copy()

    for name in list(os.environ):
        if name.startswith("MAATOOLS_"):
            del os.environ[name]

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
