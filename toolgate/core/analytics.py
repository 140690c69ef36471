"""Analytics: per-call usage recording and the read-only usage query engine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from toolgate.core.constants import (
    DEFAULT_USAGE_LOOKBACK_DAYS,
    MAX_ERROR_MESSAGE,
    MAX_USAGE_CATEGORY,
    MAX_USAGE_LOOKBACK_DAYS,
    MAX_USAGE_TOOL_NAME,
)

if TYPE_CHECKING:
    from toolgate.storage.database import StoreGateway

logger = logging.getLogger(__name__)


# ============================================================
# Data model
# ============================================================

@dataclass
class UsageRecord:
    """Single tool invocation record."""
    tool_name: str
    category: str
    duration_ms: float
    success: bool
    error_message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Clamped to the tool_usage column widths; unknown-tool names come from the caller.
        self.tool_name = self.tool_name[:MAX_USAGE_TOOL_NAME]
        self.category = self.category[:MAX_USAGE_CATEGORY]
        if self.error_message is not None:
            self.error_message = self.error_message[:MAX_ERROR_MESSAGE]


# ============================================================
# UsageRecorder: non-blocking async writer
# ============================================================

class UsageRecorder:
    """Non-blocking usage record writer.

    Records are enqueued and flushed to the store in batches by a background
    task. Records are skipped while the store is not ready, and dropped when
    the queue is full. A failed write is logged and never reaches the caller.
    """

    QUEUE_MAX = 10_000
    FLUSH_INTERVAL = 2.0  # seconds
    BATCH_MAX = 500

    def __init__(self, store: StoreGateway, *, flush_interval: float | None = None, enabled: bool = True):
        self.store = store
        self.enabled = enabled
        self.flush_interval = flush_interval if flush_interval is not None else self.FLUSH_INTERVAL
        self._queue: asyncio.Queue[UsageRecord] = asyncio.Queue(maxsize=self.QUEUE_MAX)
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.dropped = 0

    def record(self, record: UsageRecord) -> None:
        """Enqueue a record. Never blocks and never raises."""
        if not self.enabled:
            return
        if not self.store.ready:
            logger.debug("Usage record for %s skipped: store not ready", record.tool_name)
            return
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self.dropped += 1

    def start(self) -> None:
        """Start the background flush task. Requires a running event loop."""
        if self._task is not None or not self.enabled:
            return
        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(self._flush_loop(), name="UsageRecorder")
        logger.info("UsageRecorder: started")

    async def stop(self) -> None:
        """Signal stop and wait for the final flush."""
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=10)
        except asyncio.TimeoutError:
            logger.warning("UsageRecorder: flush task did not stop within timeout")
        else:
            logger.info("UsageRecorder: stopped")
        self._task = None

    async def _flush_loop(self) -> None:
        while not self._stop_event.is_set():
            await self.flush()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.flush_interval)
            except asyncio.TimeoutError:
                pass
        # Final drain on shutdown
        await self.flush()

    async def flush(self) -> int:
        """Write up to BATCH_MAX queued records. Returns how many were taken off the queue."""
        batch: list[UsageRecord] = []
        while len(batch) < self.BATCH_MAX:
            try:
                batch.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break

        if not batch:
            return 0

        try:
            await self.store.execute_many(
                """
                INSERT INTO tool_usage
                    (tool_name, category, execution_time_ms, success, error_message, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                [
                    (r.tool_name, r.category, r.duration_ms, r.success, r.error_message, r.timestamp)
                    for r in batch
                ],
            )
        except Exception:
            logger.warning("UsageRecorder: flush failed for %d records", len(batch), exc_info=True)
        return len(batch)


# ============================================================
# UsageQueryEngine: read-only aggregates
# ============================================================

def clamp_days(days: int | None) -> int:
    if not days or days < 1:
        return DEFAULT_USAGE_LOOKBACK_DAYS
    return min(days, MAX_USAGE_LOOKBACK_DAYS)


class UsageQueryEngine:
    """Read-only query layer over ``tool_usage`` for the admin API and meta tools."""

    def __init__(self, store: StoreGateway):
        self.store = store

    async def usage_stats(self, days: int = DEFAULT_USAGE_LOOKBACK_DAYS) -> dict:
        """Totals plus per-tool, per-day and per-category breakdowns."""
        self.store.require_ready()
        days = clamp_days(days)
        since = datetime.now(timezone.utc) - timedelta(days=days)

        totals = await self.store.execute_one(
            """
            SELECT COUNT(*) AS calls,
                   COUNT(*) FILTER (WHERE NOT success) AS errors
            FROM tool_usage
            WHERE created_at >= %s
            """,
            (since,),
        )
        by_tool = await self.store.execute(
            """
            SELECT tool_name,
                   COUNT(*) AS calls,
                   COUNT(*) FILTER (WHERE NOT success) AS errors,
                   COALESCE(SUM(execution_time_ms), 0) AS total_time
            FROM tool_usage
            WHERE created_at >= %s
            GROUP BY tool_name
            ORDER BY calls DESC
            """,
            (since,),
        )
        by_day = await self.store.execute(
            """
            SELECT to_char(date_trunc('day', created_at), 'YYYY-MM-DD') AS day,
                   COUNT(*) AS calls
            FROM tool_usage
            WHERE created_at >= %s
            GROUP BY 1
            ORDER BY 1
            """,
            (since,),
        )
        by_category = await self.store.execute(
            """
            SELECT category, COUNT(*) AS calls
            FROM tool_usage
            WHERE created_at >= %s
            GROUP BY category
            ORDER BY calls DESC
            """,
            (since,),
        )

        return {
            "period": {"days": days, "since": since.isoformat()},
            "totals": {
                "calls": totals["calls"] if totals else 0,
                "errors": totals["errors"] if totals else 0,
            },
            "byTool": {
                r["tool_name"]: {
                    "calls": r["calls"],
                    "errors": r["errors"],
                    "totalTime": round(float(r["total_time"]), 1),
                }
                for r in by_tool
            },
            "byDay": {r["day"]: r["calls"] for r in by_day},
            "byCategory": {r["category"]: r["calls"] for r in by_category},
        }

    async def dashboard(self) -> dict:
        """Last-24h KPIs and per-tool call/error counts."""
        self.store.require_ready()
        since = datetime.now(timezone.utc) - timedelta(hours=24)
        totals = await self.store.execute_one(
            """
            SELECT COUNT(*) AS total_calls,
                   COUNT(*) FILTER (WHERE success) AS successful_calls,
                   AVG(execution_time_ms) AS avg_time
            FROM tool_usage
            WHERE created_at >= %s
            """,
            (since,),
        )
        tool_rows = await self.store.execute(
            """
            SELECT tool_name,
                   COUNT(*) AS calls,
                   COUNT(*) FILTER (WHERE NOT success) AS errors
            FROM tool_usage
            WHERE created_at >= %s
            GROUP BY tool_name
            ORDER BY calls DESC
            """,
            (since,),
        )

        total = totals["total_calls"] if totals else 0
        ok = totals["successful_calls"] if totals else 0
        avg_time = round(float(totals["avg_time"] or 0), 1) if totals else 0
        error_rate = round(((total - ok) / total * 100) if total > 0 else 0, 2)

        return {
            "last24h": {
                "totalCalls": total,
                "successfulCalls": ok,
                "errorRate": error_rate,
                "avgExecutionTime": avg_time,
            },
            "toolStats": {
                r["tool_name"]: {"calls": r["calls"], "errors": r["errors"]}
                for r in tool_rows
            },
        }

    async def top_tools(self, days: int = MAX_USAGE_LOOKBACK_DAYS, limit: int = 20) -> list[dict]:
        self.store.require_ready()
        since = datetime.now(timezone.utc) - timedelta(days=clamp_days(days))
        rows = await self.store.execute(
            """
            SELECT tool_name, category,
                   COUNT(*) AS calls,
                   COUNT(*) FILTER (WHERE success) AS successes,
                   AVG(execution_time_ms) AS avg_ms
            FROM tool_usage
            WHERE created_at >= %s
            GROUP BY tool_name, category
            ORDER BY calls DESC
            LIMIT %s
            """,
            (since, limit),
        )
        return [
            {
                "tool": r["tool_name"],
                "category": r["category"],
                "calls": r["calls"],
                "success_rate": f"{(r['successes'] / r['calls'] * 100) if r['calls'] else 0:.1f}%",
                "avg_execution_ms": round(float(r["avg_ms"] or 0)),
            }
            for r in rows
        ]

    async def recent_errors(self, limit: int = 5) -> list[dict]:
        self.store.require_ready()
        rows = await self.store.execute(
            """
            SELECT tool_name, error_message, created_at
            FROM tool_usage
            WHERE NOT success
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (limit,),
        )
        return [
            {
                "tool": r["tool_name"],
                "error": r["error_message"],
                "at": r["created_at"].isoformat() if r["created_at"] else None,
            }
            for r in rows
        ]
