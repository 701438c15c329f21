"""Tests for settings, logging setup and the error taxonomy."""

import sys

from loguru import logger

from neo_cache.config.logging_config import setup_logging
from neo_cache.config.settings import BackendProvider, CacheLayerSettings, get_settings
from neo_cache.core.exceptions import (
    BackendError,
    BackendTimeoutError,
    CacheError,
    ConfigurationError,
    NeoCacheError,
    create_error_response,
)
from neo_cache.sessions.entities import SessionConfig


class TestSettings:

    def test_defaults(self):
        settings = CacheLayerSettings(_env_file=None)

        assert settings.redis_provider is BackendProvider.REST
        assert settings.cache_default_ttl == 3600
        assert settings.cache_list_ttl == 600
        assert settings.session_ttl == 604800
        assert settings.session_max_sessions == 5
        assert settings.redis_connect_timeout == 10.0
        assert settings.redis_command_timeout == 5.0
        assert settings.session_activity_limit == 100

    def test_environment_aliases(self, monkeypatch):
        monkeypatch.setenv("REDIS_PROVIDER", "upstash")
        monkeypatch.setenv("UPSTASH_REDIS_REST_URL", "https://cache.example.com")
        monkeypatch.setenv("UPSTASH_REDIS_REST_TOKEN", "secret-token")
        monkeypatch.setenv("SESSION_TTL", "3600")

        settings = CacheLayerSettings(_env_file=None)
        assert settings.redis_provider is BackendProvider.REST
        assert settings.redis_rest_url == "https://cache.example.com"
        assert settings.rest_token == "secret-token"
        assert "secret-token" not in repr(settings)
        assert settings.session_ttl == 3600

    def test_password_is_secret(self):
        settings = CacheLayerSettings(_env_file=None, redis_password="pw")
        assert settings.password == "pw"
        assert CacheLayerSettings(_env_file=None).password is None

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_session_config_from_settings(self):
        settings = CacheLayerSettings(_env_file=None, session_max_sessions=2, session_extend_on_access=False)
        config = SessionConfig.from_settings(settings)
        assert config == SessionConfig(ttl=604800, extend_on_access=False, max_sessions=2, track_activity=True)


class TestLogging:

    def test_setup_logging_writes_to_file(self, tmp_path):
        log_file = tmp_path / "neo_cache.log"
        setup_logging(level="DEBUG", log_file=str(log_file))
        try:
            logger.debug("cache warmed")
        finally:
            logger.remove()
            logger.add(sys.stderr)

        assert "cache warmed" in log_file.read_text()


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(BackendTimeoutError, BackendError)
        assert issubclass(BackendError, CacheError)
        assert issubclass(CacheError, NeoCacheError)
        assert issubclass(ConfigurationError, NeoCacheError)

    def test_error_response(self):
        error = ConfigurationError("Missing host", details={"provider": "native"})
        assert create_error_response(error) == {
            "error": {
                "code": "ConfigurationError",
                "message": "Missing host",
                "details": {"provider": "native"},
                "type": "ConfigurationError",
            }
        }
