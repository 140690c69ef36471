"""Dispatch core: the one path every tool call takes, whichever transport it came from.

    lookup → validate → (store check) → invoke with timer → CallResult

Every call, successful or not, hands one UsageRecord to the recorder without
awaiting it. A failing handler never escapes as an exception: it becomes a
failure CallResult carrying ``{"error": ..., "tool": ...}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from toolgate.core.analytics import UsageRecord
from toolgate.core.errors import (
    GatewayError,
    HandlerError,
    InvalidArguments,
    ToolTimeout,
    UnknownTool,
)
from toolgate.core.registry import ToolSpec, infer_category

if TYPE_CHECKING:
    from toolgate.core.analytics import UsageRecorder
    from toolgate.core.registry import ToolRegistry
    from toolgate.storage.database import StoreGateway

logger = logging.getLogger(__name__)


@dataclass
class CallResult:
    """Outcome of one dispatched call. ``payload`` is already JSON-safe."""
    tool: str
    success: bool
    payload: Any
    duration_ms: float
    error_kind: str | None = None

    @property
    def error(self) -> str | None:
        if self.success:
            return None
        return self.payload.get("error")

    def text(self) -> str:
        return json.dumps(self.payload, indent=2)

    def to_content(self) -> dict:
        """Line-protocol result body."""
        body: dict[str, Any] = {"content": [{"type": "text", "text": self.text()}]}
        if not self.success:
            body["isError"] = True
        return body


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "Invalid arguments: " + "; ".join(parts)


class Dispatcher:
    """Routes tool calls to handlers and describes the registered tools."""

    def __init__(
        self,
        registry: ToolRegistry,
        store: StoreGateway,
        recorder: UsageRecorder,
        *,
        call_timeout: float = 0,
        max_concurrent_calls: int = 0,
    ):
        self.registry = registry
        self.store = store
        self.recorder = recorder
        self.call_timeout = call_timeout
        self._semaphore = asyncio.Semaphore(max_concurrent_calls) if max_concurrent_calls > 0 else None

    # ------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------

    def list_tools(self) -> list[dict]:
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "category": spec.category,
                "inputSchema": spec.json_schema(),
                "examples": list(spec.examples),
            }
            for spec in self.registry
        ]

    def describe_tool(self, name: str) -> dict:
        spec = self.registry.get(name)
        if spec is None:
            raise UnknownTool(name)
        return spec.describe()

    # ------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallResult:
        """Run one tool call end to end. Never raises for tool-level failures."""
        t0 = time.monotonic()
        spec = self.registry.get(name)
        category = spec.category if spec else infer_category(name)

        try:
            if spec is None:
                raise UnknownTool(name)
            args = self._validate(spec, arguments)
            if spec.requires_store:
                self.store.require_ready()
            value = await self._invoke(spec, args)
            try:
                payload = to_jsonable_python(value)
            except Exception as exc:
                raise HandlerError(f"Tool result is not JSON-serializable: {exc}") from exc
            result = CallResult(tool=name, success=True, payload=payload, duration_ms=0.0)
        except GatewayError as exc:
            result = self._failure(name, exc, exc.kind)
        except Exception as exc:
            logger.exception("Tool %s failed", name)
            result = self._failure(name, exc, HandlerError.kind)

        result.duration_ms = round((time.monotonic() - t0) * 1000, 2)
        self._record(result, category)
        return result

    def _validate(self, spec: ToolSpec, arguments: dict[str, Any] | None):
        if arguments is not None and not isinstance(arguments, dict):
            raise InvalidArguments("Invalid arguments: expected an object")
        try:
            return spec.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            raise InvalidArguments(format_validation_error(exc)) from exc

    async def _invoke(self, spec: ToolSpec, args) -> Any:
        if self._semaphore is None:
            return await self._run_handler(spec, args)
        async with self._semaphore:
            return await self._run_handler(spec, args)

    async def _run_handler(self, spec: ToolSpec, args) -> Any:
        if self.call_timeout <= 0:
            return await spec.handler(args)
        timer = asyncio.timeout(self.call_timeout)
        try:
            async with timer:
                return await spec.handler(args)
        except TimeoutError as exc:
            # A TimeoutError raised by the handler itself is a handler failure.
            if not timer.expired():
                raise
            raise ToolTimeout(f"Tool {spec.name} timed out after {self.call_timeout:g}s") from exc

    @staticmethod
    def _failure(name: str, exc: BaseException, kind: str) -> CallResult:
        message = str(exc) or type(exc).__name__
        return CallResult(
            tool=name,
            success=False,
            payload={"error": message, "tool": name},
            duration_ms=0.0,
            error_kind=kind,
        )

    def _record(self, result: CallResult, category: str) -> None:
        try:
            self.recorder.record(UsageRecord(
                tool_name=result.tool,
                category=category,
                duration_ms=result.duration_ms,
                success=result.success,
                error_message=result.error,
            ))
        except Exception:
            logger.warning("Usage record for %s dropped", result.tool, exc_info=True)
