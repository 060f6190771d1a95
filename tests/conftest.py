"""
Pytest configuration for Nearby Explorer tests.

Pins the environment so no test depends on a developer's .env or API keys.
"""
import pytest

from nearby_explorer.config import reset_config


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables before each test."""
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("FLIGHT_SEED", "42")
    monkeypatch.setenv("OVERPASS_URLS", "https://primary.example/api/interpreter,https://mirror.example/api/interpreter")
    for key in ("UNSPLASH_KEY", "PIXABAY_KEY", "PEXELS_KEY", "CACHE_BUDGET_BYTES",
                "CACHE_ITEM_CEILING_BYTES", "CACHE_COMPRESS_THRESHOLD", "LOG_FILE"):
        monkeypatch.setenv(key, "")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock():
    from fakes import FakeClock
    return FakeClock()
