"""Tests for toolgate.storage.database: readiness, bounded retries, degraded mode."""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolgate.config import DatabaseConfig
from toolgate.core.errors import StoreUnavailable
from toolgate.storage.database import MIGRATIONS_DIR, StoreGateway

CONFIGURED = DatabaseConfig(url="postgresql://gate@localhost/gate", service_key="secret")


class TestInitialize:
    @pytest.mark.asyncio
    async def test_unset_endpoint_returns_false_immediately(self):
        store = StoreGateway(DatabaseConfig())
        with patch.object(StoreGateway, "_connect_once", new=AsyncMock()) as connect:
            t0 = time.monotonic()
            assert await store.initialize() is False
            elapsed = time.monotonic() - t0
        connect.assert_not_called()
        assert elapsed < 0.5
        assert store.ready is False

    @pytest.mark.asyncio
    async def test_missing_service_key_returns_false(self):
        store = StoreGateway(DatabaseConfig(url="postgresql://localhost/gate"))
        assert await store.initialize() is False

    @pytest.mark.asyncio
    async def test_retries_then_degrades(self):
        store = StoreGateway(CONFIGURED)
        store.RETRY_DELAY = 0
        connect = AsyncMock(side_effect=OSError("connection refused"))
        with patch.object(store, "_connect_once", new=connect):
            assert await store.initialize() is False
        assert connect.await_count == StoreGateway.MAX_ATTEMPTS
        assert store.ready is False

    @pytest.mark.asyncio
    async def test_retry_delay_grows_per_attempt(self):
        store = StoreGateway(CONFIGURED)
        connect = AsyncMock(side_effect=OSError("refused"))
        with patch.object(store, "_connect_once", new=connect), \
             patch("toolgate.storage.database.asyncio.sleep", new=AsyncMock()) as sleep:
            await store.initialize()
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_second_attempt_succeeds(self):
        store = StoreGateway(CONFIGURED)
        store.RETRY_DELAY = 0
        pool = AsyncMock()
        connect = AsyncMock(side_effect=[OSError("refused"), pool])
        with patch.object(store, "_connect_once", new=connect), \
             patch.object(store, "run_migrations", new=AsyncMock()) as migrate:
            assert await store.initialize() is True
        migrate.assert_awaited_once()
        assert store.ready is True

    @pytest.mark.asyncio
    async def test_migration_failure_degrades(self):
        store = StoreGateway(CONFIGURED)
        pool = AsyncMock()
        with patch.object(store, "_connect_once", new=AsyncMock(return_value=pool)), \
             patch.object(store, "run_migrations", new=AsyncMock(side_effect=RuntimeError("bad sql"))):
            assert await store.initialize() is False
        pool.close.assert_awaited_once()
        assert store.ready is False


    @pytest.mark.asyncio
    async def test_refused_server_fails_fast(self):
        # Nothing listens on port 1: every attempt is refused at once.
        config = DatabaseConfig(url="postgresql://gate@127.0.0.1:1/gate", service_key="secret", connect_timeout=5)
        store = StoreGateway(config)
        store.RETRY_DELAY = 0
        t0 = time.monotonic()
        assert await store.initialize() is False
        assert time.monotonic() - t0 < config.connect_timeout
        assert store.ready is False


class TestQueriesWhenNotReady:
    def test_require_ready_raises(self):
        store = StoreGateway(DatabaseConfig())
        with pytest.raises(StoreUnavailable):
            store.require_ready()

    @pytest.mark.asyncio
    async def test_execute_raises(self):
        store = StoreGateway(DatabaseConfig())
        with pytest.raises(StoreUnavailable):
            await store.execute("SELECT 1")
        with pytest.raises(StoreUnavailable):
            await store.execute_one("SELECT 1")
        with pytest.raises(StoreUnavailable):
            await store.execute_many("SELECT %s", [(1,)])


class TestMigrations:
    def test_initial_schema_present(self):
        files = sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))
        assert files[0] == "001_initial_schema.sql"
        sql = (MIGRATIONS_DIR / files[0]).read_text()
        for table in ("tasks", "memory", "inbox", "credentials", "tool_usage"):
            assert f"CREATE TABLE IF NOT EXISTS {table}" in sql

    @pytest.mark.asyncio
    async def test_run_migrations_needs_pool(self):
        with pytest.raises(StoreUnavailable):
            await StoreGateway(CONFIGURED).run_migrations()


class RecordingContext:
    """Async context manager that remembers how it was exited."""

    def __init__(self, value=None):
        self.value = value
        self.exit_type = "open"

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, exc_type, exc, tb):
        self.exit_type = exc_type
        return False


def ready_store():
    conn = MagicMock()
    tx = RecordingContext()
    conn.transaction.return_value = tx
    pool = MagicMock()
    pool.connection.return_value = RecordingContext(conn)
    store = StoreGateway(CONFIGURED)
    store._pool = pool
    store._ready = True
    return store, conn, tx


class TestTransaction:
    @pytest.mark.asyncio
    async def test_clean_exit_commits(self):
        store, conn, tx = ready_store()
        async with store.transaction() as c:
            assert c is conn
        assert tx.exit_type is None

    @pytest.mark.asyncio
    async def test_error_rolls_back_whole_block(self):
        store, conn, tx = ready_store()
        with pytest.raises(RuntimeError):
            async with store.transaction():
                raise RuntimeError("second statement failed")
        assert tx.exit_type is RuntimeError

    @pytest.mark.asyncio
    async def test_not_ready(self):
        with pytest.raises(StoreUnavailable):
            async with StoreGateway(CONFIGURED).transaction():
                pass
