"""Admin endpoints: dashboard, credentials, tool testing and usage statistics."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from toolgate.api.core import health_payload
from toolgate.api.utils import call_status
from toolgate.core.constants import DEFAULT_USAGE_LOOKBACK_DAYS
from toolgate.core.errors import CredentialNotFound
from toolgate.core.services import Services
from toolgate.core.vault import mask_secret

logger = logging.getLogger(__name__)


class CredentialIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(..., min_length=1, max_length=100)
    api_key: str = Field(..., alias="apiKey", min_length=1)
    metadata: dict[str, Any] | None = None


def register_routes(router: APIRouter, svc: Services, **kw):
    vault = svc.vault
    analytics = svc.analytics
    registry = svc.registry
    dispatcher = svc.dispatcher

    @router.get("/admin/api/dashboard")
    async def api_dashboard():
        stats = await analytics.dashboard()
        credentials = await vault.list()
        return {
            "health": health_payload(svc),
            "stats": stats,
            "credentials": {
                "count": len(credentials),
                "services": [c["service"] for c in credentials],
            },
        }

    # ------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------

    @router.get("/admin/api/credentials")
    async def api_list_credentials():
        return {"credentials": await vault.list()}

    @router.post("/admin/api/credentials")
    async def api_set_credential(body: CredentialIn):
        await vault.set(body.service, body.api_key, body.metadata)
        return {"success": True, "service": body.service}

    @router.delete("/admin/api/credentials/{service}")
    async def api_delete_credential(service: str):
        if not await vault.delete(service):
            return JSONResponse(status_code=404, content={"error": f"No credential for service: {service}"})
        return {"success": True, "service": service}

    @router.post("/admin/api/credentials/{service}/test")
    async def api_test_credential(service: str):
        try:
            secret = await vault.get(service)
        except CredentialNotFound as e:
            return JSONResponse(status_code=404, content={"valid": False, "message": str(e)})
        return {
            "valid": True,
            "message": "Credential decrypted successfully",
            "keyLength": len(secret),
            "keyPreview": mask_secret(secret),
        }

    # ------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------

    @router.get("/admin/api/tools")
    async def api_admin_tools():
        grouped = registry.by_category()
        return {
            "total": len(registry),
            "categories": registry.categories(),
            "tools": dispatcher.list_tools(),
            "byCategory": {cat: [s.name for s in specs] for cat, specs in grouped.items()},
        }

    @router.post("/admin/api/tools/{name}/test")
    async def api_test_tool(name: str, arguments: dict[str, Any] | None = Body(None)):
        result = await dispatcher.call_tool(name, arguments)
        body: dict[str, Any] = {
            "success": result.success,
            "tool": name,
            "executionTime": result.duration_ms,
        }
        if result.success:
            body["result"] = result.payload
        else:
            body["error"] = result.error
        return JSONResponse(status_code=call_status(result), content=body)

    # ------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------

    @router.get("/admin/api/stats/usage")
    async def api_usage_stats(days: int = Query(DEFAULT_USAGE_LOOKBACK_DAYS, ge=1)):
        return await analytics.usage_stats(days=days)
