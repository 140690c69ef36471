"""Core endpoints: health, tool listing and tool calls."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from toolgate.api.utils import call_status
from toolgate.core.services import Services


class ToolCallRequest(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] | None = None


def health_payload(svc: Services) -> dict:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": svc.uptime,
        "port": svc.admin_port,
        "database": "connected" if svc.store.ready else "degraded",
        "tools": {
            "total": len(svc.registry),
            "categories": svc.registry.categories(),
        },
    }


def register_routes(router: APIRouter, svc: Services, **kw):
    dispatcher = svc.dispatcher
    registry = svc.registry

    @router.get("/health")
    async def api_health():
        return health_payload(svc)

    @router.get("/tools")
    async def api_tools():
        tools = []
        for spec in registry:
            required, properties = spec.argument_names()
            tools.append({
                "name": spec.name,
                "description": spec.description,
                "category": spec.category,
                "inputSchema": {"required": required, "properties": properties},
            })
        return {"tools": tools}

    @router.post("/tools/call")
    async def api_tools_call(body: ToolCallRequest):
        result = await dispatcher.call_tool(body.name, body.arguments)
        if result.success:
            return result.to_content()
        return JSONResponse(status_code=call_status(result), content=result.payload)

    @router.get("/api/status")
    async def api_status():
        return {
            "status": "authenticated",
            "tools_count": len(registry),
            "database": "connected" if svc.store.ready else "degraded",
        }
