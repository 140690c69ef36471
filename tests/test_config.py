"""Tests for environment-driven configuration."""

import pytest

from toolgate.config import (
    AuthConfig,
    Config,
    DatabaseConfig,
    VaultConfig,
    load_config,
    validate_environment,
)

TOOLGATE_VARS = (
    "TOOLGATE_DB_URL", "TOOLGATE_DB_SERVICE_KEY", "TOOLGATE_AUTH_TOKEN", "TOOLGATE_ENCRYPTION_KEY",
    "TOOLGATE_HTTP_ENABLED", "TOOLGATE_HTTP_HOST", "TOOLGATE_HTTP_PORT", "TOOLGATE_HTTP_PORT_ATTEMPTS",
    "TOOLGATE_CORS_ORIGINS", "TOOLGATE_CALL_TIMEOUT", "TOOLGATE_MAX_CONCURRENT_CALLS",
    "TOOLGATE_LOG_LEVEL", "TOOLGATE_LOG_DIR", "TOOLGATE_USAGE_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in TOOLGATE_VARS:
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.db.configured is False
        assert config.auth.enabled is False
        assert config.vault.usable is False
        assert config.http.enabled is True
        assert (config.http.host, config.http.port, config.http.port_attempts) == ("127.0.0.1", 9001, 10)
        assert config.http.cors_origins == ["*"]
        assert config.dispatch.call_timeout == 120.0
        assert config.dispatch.max_concurrent_calls == 0
        assert config.log.level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("TOOLGATE_DB_URL", "postgresql://gw@db/toolgate")
        monkeypatch.setenv("TOOLGATE_DB_SERVICE_KEY", "service-key")
        monkeypatch.setenv("TOOLGATE_AUTH_TOKEN", "tok")
        monkeypatch.setenv("TOOLGATE_ENCRYPTION_KEY", "k" * 32)
        monkeypatch.setenv("TOOLGATE_HTTP_ENABLED", "no")
        monkeypatch.setenv("TOOLGATE_HTTP_PORT", "9100")
        monkeypatch.setenv("TOOLGATE_HTTP_PORT_ATTEMPTS", "0")
        monkeypatch.setenv("TOOLGATE_CORS_ORIGINS", "http://a.test, http://b.test ,")
        monkeypatch.setenv("TOOLGATE_LOG_LEVEL", "debug")
        config = load_config()
        assert config.db.configured is True
        assert config.auth.enabled is True
        assert config.vault.usable is True
        assert config.http.enabled is False
        assert config.http.port == 9100
        assert config.http.port_attempts == 1
        assert config.http.cors_origins == ["http://a.test", "http://b.test"]
        assert config.log.level == "DEBUG"

    def test_empty_token_means_disabled(self, monkeypatch):
        monkeypatch.setenv("TOOLGATE_AUTH_TOKEN", "")
        assert load_config().auth.token is None


class TestValidateEnvironment:
    def test_everything_missing(self):
        warnings = validate_environment(Config())
        assert len(warnings) == 4
        assert any("TOOLGATE_DB_URL" in w for w in warnings)
        assert any("credential storage disabled" in w for w in warnings)
        assert any("admin API disabled" in w for w in warnings)

    def test_short_master_key(self):
        config = Config(
            db=DatabaseConfig(url="postgresql://db", service_key="k"),
            auth=AuthConfig(token="t"),
            vault=VaultConfig(master_key="short"),
        )
        assert validate_environment(config) == [
            "TOOLGATE_ENCRYPTION_KEY shorter than 32 characters - credential storage disabled",
        ]

    def test_complete(self):
        config = Config(
            db=DatabaseConfig(url="postgresql://db", service_key="k"),
            auth=AuthConfig(token="t"),
            vault=VaultConfig(master_key="k" * 32),
        )
        assert validate_environment(config) == []
