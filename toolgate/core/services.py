"""Service container and factory. Centralizes component initialization."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

from toolgate.config import Config, load_config
from toolgate.core.analytics import UsageQueryEngine, UsageRecorder
from toolgate.core.dispatch import Dispatcher
from toolgate.core.registry import ToolRegistry
from toolgate.core.vault import CredentialVault
from toolgate.storage.database import StoreGateway

logger = logging.getLogger(__name__)

# Outbound API calls from tool handlers; the dispatcher timeout bounds the whole call.
HTTP_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


@dataclass
class Services:
    """Holds all initialized gateway components."""

    config: Config
    store: StoreGateway
    vault: CredentialVault
    http: httpx.AsyncClient
    usage: UsageRecorder
    analytics: UsageQueryEngine
    registry: ToolRegistry
    dispatcher: Dispatcher
    started_at: float = field(default_factory=time.monotonic)
    admin_port: int | None = None  # set once the admin HTTP transport is bound

    @property
    def uptime(self) -> float:
        return round(time.monotonic() - self.started_at, 1)

    async def aclose(self) -> None:
        """Release resources in reverse dependency order."""
        await self.usage.stop()
        await self.http.aclose()
        await self.store.close()


def create_services(
    config: Config | None = None,
    store: StoreGateway | None = None,
    http: httpx.AsyncClient | None = None,
) -> Services:
    """Build all gateway services from config.

    Args:
        config: Configuration to use. Loads from env if None.
        store: Store gateway to share. Creates a new (uninitialized) one if None.
        http: Outbound HTTP client for tool handlers. Creates one if None.
    """
    if config is None:
        config = load_config()

    if store is None:
        store = StoreGateway(config.db)

    if http is None:
        http = httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True)

    usage = UsageRecorder(
        store,
        flush_interval=config.analytics.flush_interval,
        enabled=config.analytics.enabled,
    )
    if not config.analytics.enabled:
        logger.info("Usage recording disabled by config")

    registry = ToolRegistry()
    dispatcher = Dispatcher(
        registry, store, usage,
        call_timeout=config.dispatch.call_timeout,
        max_concurrent_calls=config.dispatch.max_concurrent_calls,
    )

    return Services(
        config=config,
        store=store,
        vault=CredentialVault(store, config.vault.master_key),
        http=http,
        usage=usage,
        analytics=UsageQueryEngine(store),
        registry=registry,
        dispatcher=dispatcher,
    )
