"""Shared test helpers for toolgate tests."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import httpx
from pydantic import BaseModel

from toolgate.config import AuthConfig, Config, DispatchConfig, HttpConfig, VaultConfig
from toolgate.core.errors import StoreUnavailable
from toolgate.core.registry import ToolSpec
from toolgate.core.services import create_services

TEST_TOKEN = "test-admin-token"
TEST_MASTER_KEY = "m" * 32


class FakeStore:
    """Store gateway stand-in with a settable readiness flag and AsyncMock queries."""

    def __init__(self, ready: bool = False):
        self._ready = ready
        self.execute = AsyncMock(return_value=[])
        self.execute_one = AsyncMock(return_value=None)
        self.execute_many = AsyncMock(return_value=None)
        self.close = AsyncMock(return_value=None)
        # Connection handed out by transaction(); script conn.execute per test.
        self.conn = MagicMock()
        self.conn.execute = AsyncMock(return_value=None)
        self.committed: list[str] = []
        self.rolled_back = 0

    @property
    def ready(self) -> bool:
        return self._ready

    def require_ready(self) -> None:
        if not self._ready:
            raise StoreUnavailable()

    @asynccontextmanager
    async def transaction(self):
        """Statements run on ``conn`` count as committed only when the block exits cleanly."""
        self.require_ready()
        start = len(self.conn.execute.await_args_list)
        try:
            yield self.conn
        except BaseException:
            self.rolled_back += 1
            raise
        self.committed.extend(c.args[0] for c in self.conn.execute.await_args_list[start:])


class EchoInput(BaseModel):
    msg: str


async def _echo(args: EchoInput) -> dict:
    return {"msg": args.msg}


async def _boom(args) -> dict:
    raise RuntimeError("upstream 500")


def echo_spec(**overrides) -> ToolSpec:
    fields = {"name": "echo", "description": "Echo a message", "handler": _echo, "input_model": EchoInput}
    fields.update(overrides)
    return ToolSpec(**fields)


def boom_spec(**overrides) -> ToolSpec:
    fields = {"name": "boom", "description": "Always fails", "handler": _boom}
    fields.update(overrides)
    return ToolSpec(**fields)


def make_config(token: str | None = TEST_TOKEN, master_key: str | None = TEST_MASTER_KEY, **dispatch) -> Config:
    return Config(
        auth=AuthConfig(token=token),
        http=HttpConfig(port=0),
        dispatch=DispatchConfig(**dispatch) if dispatch else DispatchConfig(),
        vault=VaultConfig(master_key=master_key),
    )


def make_services(store=None, config: Config | None = None, transport: httpx.MockTransport | None = None):
    """Services wired to a FakeStore. Pass an httpx.MockTransport to script outbound calls."""
    http = httpx.AsyncClient(transport=transport or httpx.MockTransport(lambda req: httpx.Response(404)))
    return create_services(config or make_config(), store=store or FakeStore(), http=http)


def mock_recorder() -> MagicMock:
    recorder = MagicMock()
    recorder.record = MagicMock()
    return recorder
