"""Tests for admin HTTP startup: port auto-probe and best-effort serving."""

import socket

import pytest
from fastapi.testclient import TestClient

from toolgate.api import create_api
from toolgate.api.http import start_admin_http
from toolgate.api.utils import probe_port
from toolgate.config import Config, HttpConfig

from tests.helpers import echo_spec, make_services


def occupy() -> socket.socket:
    """Listen on an ephemeral port and return the socket holding it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    return sock


class TestProbePort:
    def test_free_base_port_used(self):
        holder = occupy()
        port = holder.getsockname()[1]
        holder.close()
        sock = probe_port("127.0.0.1", port, 1)
        try:
            assert sock is not None
            assert sock.getsockname()[1] == port
        finally:
            if sock:
                sock.close()

    def test_occupied_base_port_moves_forward(self):
        holder = occupy()
        base = holder.getsockname()[1]
        sock = probe_port("127.0.0.1", base, 20)
        try:
            assert sock is not None
            assert base < sock.getsockname()[1] < base + 20
        finally:
            holder.close()
            if sock:
                sock.close()

    def test_no_free_port_in_range(self):
        holder = occupy()
        try:
            assert probe_port("127.0.0.1", holder.getsockname()[1], 1) is None
        finally:
            holder.close()


class TestStartAdminHttp:
    @pytest.mark.asyncio
    async def test_disabled_by_config(self):
        svc = make_services(config=Config(http=HttpConfig(enabled=False)))
        assert await start_admin_http(svc) is None
        assert svc.admin_port is None

    @pytest.mark.asyncio
    async def test_no_port_leaves_http_disabled(self):
        holder = occupy()
        try:
            config = Config(http=HttpConfig(port=holder.getsockname()[1], port_attempts=1))
            svc = make_services(config=config)
            assert await start_admin_http(svc) is None
            assert svc.admin_port is None
        finally:
            holder.close()

    @pytest.mark.asyncio
    async def test_probed_port_reported_in_health(self):
        holder = occupy()
        base = holder.getsockname()[1]
        config = Config(http=HttpConfig(port=base, port_attempts=20))
        svc = make_services(config=config)
        svc.registry.register(echo_spec())
        admin = await start_admin_http(svc)
        try:
            assert admin is not None
            assert admin.port != base
            assert svc.admin_port == admin.port
            health = TestClient(create_api(svc)).get("/health").json()
            assert health["port"] == admin.port
        finally:
            if admin:
                await admin.stop()
            holder.close()
