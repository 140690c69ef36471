"""Persistent store gateway: async connection pool, readiness and migrations.

Uses psycopg_pool.AsyncConnectionPool so tool handlers, the usage recorder
and the admin API can share the store from one event loop:
  - initialize() is the only place connections are first attempted; it
    retries a bounded number of times and never raises
  - ``ready`` is set once after a successful liveness check and never reset
  - every query helper raises StoreUnavailable while the store is not ready

Each query runs in its own pooled connection context, which commits on
clean exit and rolls back on error. Statements that must land together
share one connection through transaction().
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Sequence

from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from toolgate.config import DatabaseConfig
from toolgate.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class StoreGateway:
    """PostgreSQL connection pool with a one-way readiness flag."""

    MAX_ATTEMPTS = 3
    RETRY_DELAY = 1.0  # seconds, multiplied by the attempt number

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: AsyncConnectionPool | None = None
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def initialize(self) -> bool:
        """Connect, verify liveness and apply migrations. Returns the readiness flag."""
        if not self.config.url or not self.config.service_key:
            logger.warning("Store credentials not configured - running without database")
            return False

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                self._pool = await self._connect_once()
                break
            except Exception as exc:
                logger.warning(
                    "Store connection attempt %d/%d failed: %s",
                    attempt, self.MAX_ATTEMPTS, exc,
                )
                if attempt < self.MAX_ATTEMPTS:
                    await asyncio.sleep(self.RETRY_DELAY * attempt)
        else:
            logger.error("Store unavailable after %d attempts - running degraded", self.MAX_ATTEMPTS)
            return False

        try:
            await self.run_migrations()
        except Exception:
            logger.exception("Store migrations failed - running degraded")
            await self._close_pool()
            return False

        self._ready = True
        logger.info(
            "Store ready (pool min=%d, max=%d)",
            self.config.min_pool_size, self.config.max_pool_size,
        )
        return True

    async def _connect_once(self) -> AsyncConnectionPool:
        """One direct connection and a trivial read, then the pool.

        A refused or unreachable server fails the attempt immediately; the pool
        is only created once the server has answered.
        """
        conn = await AsyncConnection.connect(
            self.config.url,
            password=self.config.service_key,
            connect_timeout=max(1, int(self.config.connect_timeout)),
        )
        try:
            await conn.execute("SELECT 1")
        finally:
            await conn.close()

        pool = AsyncConnectionPool(
            self.config.url,
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
            kwargs={"password": self.config.service_key, "row_factory": dict_row},
            timeout=self.config.connect_timeout,
            open=False,
        )
        await pool.open(wait=False)
        return pool

    async def _close_pool(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def close(self) -> None:
        """Shut down the pool. Readiness stays as it was; queries fail afterwards."""
        await self._close_pool()

    def require_ready(self) -> None:
        if not self._ready or self._pool is None:
            raise StoreUnavailable()

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> list[dict]:
        """Execute a query and return results."""
        self.require_ready()
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                if cur.description:
                    return await cur.fetchall()
                return []

    async def execute_one(self, query: str, params: Sequence[Any] | None = None) -> dict | None:
        """Execute a query and return a single result."""
        self.require_ready()
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                if cur.description:
                    return await cur.fetchone()
                return None

    async def execute_many(self, query: str, params_seq: Iterable[Sequence[Any]]) -> None:
        """Execute one statement for each parameter set in a single transaction."""
        self.require_ready()
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.executemany(query, params_seq)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """One connection whose statements commit together or roll back together."""
        self.require_ready()
        async with self._pool.connection() as conn:
            async with conn.transaction():
                yield conn

    async def run_migrations(self) -> None:
        """Apply all pending migrations in order."""
        if self._pool is None:
            raise StoreUnavailable()

        async with self._pool.connection() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS _migrations (
                    id SERIAL PRIMARY KEY,
                    filename VARCHAR(255) UNIQUE NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
            """)
            cur = await conn.execute("SELECT filename FROM _migrations")
            applied = {row["filename"] for row in await cur.fetchall()}

        migration_files = sorted(MIGRATIONS_DIR.glob("*.sql"))
        for migration_file in migration_files:
            if migration_file.name in applied:
                continue

            logger.info("Applying migration: %s", migration_file.name)
            sql = migration_file.read_text()
            try:
                async with self._pool.connection() as conn:
                    async with conn.transaction():
                        await conn.execute(sql)
                        await conn.execute(
                            "INSERT INTO _migrations (filename) VALUES (%s)",
                            (migration_file.name,),
                        )
            except Exception:
                logger.exception("Migration failed: %s", migration_file.name)
                raise
            logger.info("Migration applied: %s", migration_file.name)

        logger.info("All migrations applied. %d total.", len(migration_files))
