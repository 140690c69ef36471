"""Configuration management. All settings from environment variables with sensible defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# AES-256 master keys shorter than this are rejected by the vault.
MIN_MASTER_KEY_LENGTH = 32


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = ""
    service_key: str = ""
    min_pool_size: int = 1
    max_pool_size: int = 10
    connect_timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)


@dataclass(frozen=True)
class AuthConfig:
    token: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.token)


@dataclass(frozen=True)
class VaultConfig:
    master_key: str | None = None

    @property
    def usable(self) -> bool:
        return bool(self.master_key) and len(self.master_key) >= MIN_MASTER_KEY_LENGTH


@dataclass(frozen=True)
class HttpConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 9001
    port_attempts: int = 10  # base port, base+1, ... before giving up
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class DispatchConfig:
    call_timeout: float = 120.0  # seconds, 0 = no timeout
    max_concurrent_calls: int = 0  # 0 = unbounded


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    directory: str | None = None  # adds error.log + combined.log when set


@dataclass(frozen=True)
class AnalyticsConfig:
    enabled: bool = True
    flush_interval: float = 2.0


@dataclass(frozen=True)
class Config:
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    log: LogConfig = field(default_factory=LogConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    server_name: str = "toolgate"


def _parse_bool(raw: str) -> bool:
    return raw.lower() in ("true", "1", "yes")


def _parse_cors_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins. '*' means allow all."""
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config(
        db=DatabaseConfig(
            url=os.getenv("TOOLGATE_DB_URL", ""),
            service_key=os.getenv("TOOLGATE_DB_SERVICE_KEY", ""),
            min_pool_size=int(os.getenv("TOOLGATE_DB_POOL_MIN", "1")),
            max_pool_size=int(os.getenv("TOOLGATE_DB_POOL_MAX", "10")),
            connect_timeout=float(os.getenv("TOOLGATE_DB_CONNECT_TIMEOUT", "10")),
        ),
        auth=AuthConfig(
            token=os.getenv("TOOLGATE_AUTH_TOKEN") or None,
        ),
        vault=VaultConfig(
            master_key=os.getenv("TOOLGATE_ENCRYPTION_KEY") or None,
        ),
        http=HttpConfig(
            enabled=_parse_bool(os.getenv("TOOLGATE_HTTP_ENABLED", "true")),
            host=os.getenv("TOOLGATE_HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("TOOLGATE_HTTP_PORT", "9001")),
            port_attempts=max(1, int(os.getenv("TOOLGATE_HTTP_PORT_ATTEMPTS", "10"))),
            cors_origins=_parse_cors_origins(os.getenv("TOOLGATE_CORS_ORIGINS", "*")),
        ),
        dispatch=DispatchConfig(
            call_timeout=float(os.getenv("TOOLGATE_CALL_TIMEOUT", "120")),
            max_concurrent_calls=int(os.getenv("TOOLGATE_MAX_CONCURRENT_CALLS", "0")),
        ),
        log=LogConfig(
            level=os.getenv("TOOLGATE_LOG_LEVEL", "INFO").upper(),
            directory=os.getenv("TOOLGATE_LOG_DIR") or None,
        ),
        analytics=AnalyticsConfig(
            enabled=_parse_bool(os.getenv("TOOLGATE_USAGE_ENABLED", "true")),
            flush_interval=float(os.getenv("TOOLGATE_USAGE_FLUSH_INTERVAL", "2")),
        ),
    )


def validate_environment(config: Config) -> list[str]:
    """Collect configuration warnings. Never raises; every gap only disables a feature."""
    warnings: list[str] = []
    if not config.db.url:
        warnings.append("TOOLGATE_DB_URL not set - task, memory and usage features disabled")
    if not config.db.service_key:
        warnings.append("TOOLGATE_DB_SERVICE_KEY not set - task, memory and usage features disabled")
    if not config.vault.master_key:
        warnings.append("TOOLGATE_ENCRYPTION_KEY not set - credential storage disabled")
    elif not config.vault.usable:
        warnings.append(
            f"TOOLGATE_ENCRYPTION_KEY shorter than {MIN_MASTER_KEY_LENGTH} characters - credential storage disabled"
        )
    if not config.auth.token:
        warnings.append("TOOLGATE_AUTH_TOKEN not set - admin API disabled")
    return warnings
