# Configuration Tests
"""Tests for settings and logging setup."""

import logging

from portal_sync.config import Settings
from portal_sync.log import LOG_FORMAT, configure_logging


class TestSettings:
    """Test defaults and environment overrides."""

    def test_defaults(self):
        config = Settings(_env_file=None)

        assert config.backend_timeout == 10.0
        assert config.fetch_max_attempts == 3
        assert config.retry_base_delay == 1.0
        assert config.retry_max_delay == 5.0
        assert config.reference_cache_ttl == 300.0
        assert config.default_show_drafts is False
        assert config.cancel_inflight_requests is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FETCH_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("DEFAULT_SHOW_DRAFTS", "true")
        monkeypatch.setenv("BACKEND_URL", "https://portal.example/api")

        config = Settings(_env_file=None)

        assert config.fetch_max_attempts == 5
        assert config.default_show_drafts is True
        assert config.backend_url == "https://portal.example/api"


class TestLogging:
    """Test logging configuration."""

    def test_configure_logging_sets_package_level(self):
        logger = configure_logging("debug")

        assert logger.name == "portal_sync"
        assert logger.level == logging.DEBUG
        assert "%(name)s" in LOG_FORMAT

        configure_logging("INFO")
