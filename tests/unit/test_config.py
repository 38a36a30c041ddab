"""Unit tests for environment-driven settings."""

from unittest.mock import patch

import pytest

from manifest_engine.config import EngineSettings, load_settings


@pytest.fixture(autouse=True)
def no_dotenv():
    """Keep a developer's .env file out of these tests."""
    with patch("manifest_engine.config.load_dotenv"):
        yield


def test_defaults():
    """Test the built-in defaults."""
    settings = EngineSettings()

    assert settings.fetch_timeout_ms == 10_000
    assert settings.fetch_max_retries == 2
    assert settings.max_probe_candidates == 3
    assert settings.light_range_bytes == 4_096
    assert settings.content_cache_ttl == 60.0


def test_environment_overrides(monkeypatch):
    """Test that prefixed variables override defaults by type."""
    monkeypatch.setenv("MANIFEST_ENGINE_FETCH_TIMEOUT_MS", "2500")
    monkeypatch.setenv("MANIFEST_ENGINE_CONTENT_CACHE_TTL", "1.5")
    monkeypatch.setenv("MANIFEST_ENGINE_USER_AGENT", "test-agent/1.0")

    settings = load_settings()

    assert settings.fetch_timeout_ms == 2500
    assert settings.content_cache_ttl == 1.5
    assert settings.user_agent == "test-agent/1.0"


def test_bad_values_fall_back_to_defaults(monkeypatch):
    """Test that unparseable or empty variables are ignored."""
    monkeypatch.setenv("MANIFEST_ENGINE_FETCH_MAX_RETRIES", "many")
    monkeypatch.setenv("MANIFEST_ENGINE_CONTENT_CACHE_TTL", "")

    settings = load_settings()

    assert settings.fetch_max_retries == 2
    assert settings.content_cache_ttl == 60.0
