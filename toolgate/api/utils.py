"""Shared utilities for API route modules."""

from __future__ import annotations

import errno
import hmac
import logging
import socket

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from toolgate.core.dispatch import CallResult
from toolgate.core.errors import ToolTimeout, UnknownTool

logger = logging.getLogger(__name__)

# Paths served without a bearer token.
PUBLIC_PATHS = ("/health",)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Shared-secret bearer token authentication.

    Allows OPTIONS requests (CORS preflight) and the health endpoint through.
    Every other path needs ``Authorization: Bearer <token>`` matching exactly.
    With no token configured, protected paths answer 500 instead.
    """

    def __init__(self, app, token: str | None):
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)
        path = request.url.path.rstrip("/")
        if path in PUBLIC_PATHS:
            return await call_next(request)

        if not self.token:
            logger.error("Admin API request rejected: no auth token configured")
            return JSONResponse(status_code=500, content={"error": "Server configuration error"})

        header = request.headers.get("Authorization", "")
        scheme, _, supplied = header.partition(" ")
        if scheme.lower() != "bearer" or not supplied:
            return JSONResponse(status_code=401, content={"error": "Missing or invalid authorization header"})
        if not hmac.compare_digest(supplied.encode(), self.token.encode()):
            return JSONResponse(status_code=401, content={"error": "Invalid token"})
        return await call_next(request)


def call_status(result: CallResult) -> int:
    """HTTP status for a dispatched call outcome."""
    if result.success:
        return 200
    if result.error_kind == UnknownTool.kind:
        return 404
    if result.error_kind == ToolTimeout.kind:
        return 504
    return 400


def probe_port(host: str, base_port: int, attempts: int) -> socket.socket | None:
    """Bind the first free port in ``[base_port, base_port + attempts)``.

    Only EADDRINUSE moves on to the next port; any other bind error gives up.
    Returns the bound socket, or None when no port could be bound.
    """
    for port in range(base_port, base_port + attempts):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            if exc.errno == errno.EADDRINUSE:
                logger.info("Port %d in use, trying %d", port, port + 1)
                continue
            logger.warning("Cannot bind %s:%d: %s", host, port, exc)
            return None
        if port != base_port:
            logger.info("Admin HTTP using port %d (base port %d was taken)", port, base_port)
        return sock

    logger.warning(
        "No free port in %d-%d - admin HTTP disabled",
        base_port, base_port + attempts - 1,
    )
    return None
