"""Admin HTTP API: health, tool listing/testing, credentials and usage statistics.

Split into domain modules under toolgate/api/. Each module exports a
register_routes(router, svc) function that adds its endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from toolgate import __version__
from toolgate.api.utils import BearerAuthMiddleware
from toolgate.core.errors import CredentialNotFound, GatewayError, StoreUnavailable
from toolgate.core.services import Services

logger = logging.getLogger(__name__)


def create_api(svc: Services) -> FastAPI:
    """Build the admin API as a FastAPI app sharing the gateway's services."""
    config = svc.config

    app = FastAPI(
        title="toolgate admin API",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.http.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(BearerAuthMiddleware, token=config.auth.token)
    if not config.auth.enabled:
        logger.warning("Admin API token not configured - only /health is served")

    @app.exception_handler(StoreUnavailable)
    async def _store_unavailable(request: Request, exc: StoreUnavailable):
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(CredentialNotFound)
    async def _credential_not_found(request: Request, exc: CredentialNotFound):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    router = APIRouter()

    from toolgate.api.core import register_routes as reg_core
    from toolgate.api.admin import register_routes as reg_admin

    reg_core(router, svc)
    reg_admin(router, svc)

    app.include_router(router)
    return app
