"""Serving the admin API inside the gateway's event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

import uvicorn

from toolgate.api import create_api
from toolgate.api.utils import probe_port
from toolgate.core.services import Services

logger = logging.getLogger(__name__)


class AdminServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the gateway process."""

    def install_signal_handlers(self) -> None:
        pass

    def capture_signals(self):
        # uvicorn >= 0.29 wraps serve() in this context manager
        return contextlib.nullcontext()


@dataclass
class AdminHTTP:
    server: AdminServer
    task: asyncio.Task
    port: int

    async def stop(self) -> None:
        self.server.should_exit = True
        try:
            await asyncio.wait_for(self.task, timeout=5)
        except asyncio.TimeoutError:
            self.task.cancel()
            logger.warning("Admin HTTP did not stop within timeout")
        except Exception:
            logger.warning("Admin HTTP stopped with an error", exc_info=True)


def _log_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Admin HTTP server failed - continuing without it", exc_info=exc)


async def start_admin_http(svc: Services) -> AdminHTTP | None:
    """Bind and start the admin API. Returns None when it could not be started.

    Nothing here is fatal: a missing port or a server crash only costs the
    admin surface, never the stdio transport.
    """
    http = svc.config.http
    if not http.enabled:
        logger.info("Admin HTTP disabled by config")
        return None

    sock = probe_port(http.host, http.port, http.port_attempts)
    if sock is None:
        return None
    port = sock.getsockname()[1]

    try:
        app = create_api(svc)
        config = uvicorn.Config(
            app,
            log_config=None,  # route uvicorn logs through our stderr handlers
            access_log=False,
            lifespan="off",
        )
        server = AdminServer(config)
    except Exception:
        sock.close()
        logger.exception("Failed to build admin HTTP server")
        return None

    svc.admin_port = port
    task = asyncio.get_running_loop().create_task(server.serve(sockets=[sock]), name="AdminHTTP")
    task.add_done_callback(_log_exit)
    logger.info("Admin HTTP listening on http://%s:%d", http.host, port)
    return AdminHTTP(server=server, task=task, port=port)
