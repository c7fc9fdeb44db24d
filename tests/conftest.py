"""
Shared fixtures.
"""

import pytest

from collabhub.core.config import get_settings

from .fakes import Stack


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """Isolate every test from the developer's environment."""
    monkeypatch.setenv("CH_SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("CH_LOG_FORMAT", "text")
    monkeypatch.setenv("CH_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def stack():
    return Stack()
