"""Meta tools: discovery and health of the gateway itself."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from toolgate import __version__
from toolgate.core.constants import CATEGORY_META
from toolgate.core.registry import NoArguments, ToolSpec

if TYPE_CHECKING:
    from toolgate.core.services import Services

logger = logging.getLogger(__name__)


class HelpInput(BaseModel):
    query: str | None = Field(None, description="Tool name or category to look up. Omit to list categories.")


class UsageStatsInput(BaseModel):
    limit: int = Field(20, ge=1, le=100, description="Number of tools to return.")
    days: int = Field(30, ge=1, le=30, description="Look-back window in days.")


def build_tools(svc: Services) -> dict[str, ToolSpec]:
    registry = svc.registry

    async def help_tool(args: HelpInput) -> dict:
        grouped = registry.by_category()
        if not args.query:
            return {
                "message": "Call help with a tool name or category for details.",
                "categories": {cat: len(specs) for cat, specs in sorted(grouped.items())},
                "total_tools": len(registry),
            }

        spec = registry.get(args.query)
        if spec is not None:
            return spec.describe()

        specs = grouped.get(args.query.lower())
        if specs:
            return {
                "category": args.query.lower(),
                "tools": [{"name": s.name, "description": s.description} for s in specs],
            }

        return {
            "error": f"No tool or category named '{args.query}'",
            "categories": registry.categories(),
        }

    async def list_capabilities(args: NoArguments) -> dict:
        return {
            "total_tools": len(registry),
            "categories": {
                cat: [{"name": s.name, "description": s.description} for s in specs]
                for cat, specs in sorted(registry.by_category().items())
            },
        }

    async def server_status(args: NoArguments) -> dict:
        status = {
            "server": svc.config.server_name,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": svc.uptime,
            "database": "connected" if svc.store.ready else "degraded",
            "tools": {"total": len(registry), "categories": registry.categories()},
            "admin_http_port": svc.admin_port,
            "apis": {
                "credential_vault": svc.vault.usable,
                "admin_api": svc.config.auth.enabled,
            },
        }
        if svc.store.ready:
            try:
                status["credentials_stored"] = [c["service"] for c in await svc.vault.list()]
                status["recent_errors"] = await svc.analytics.recent_errors(limit=5)
            except Exception as exc:
                logger.warning("server_status: store query failed", exc_info=True)
                status["store_error"] = str(exc)
        return status

    async def tool_usage_stats(args: UsageStatsInput) -> dict:
        return {
            "period_days": args.days,
            "top_tools": await svc.analytics.top_tools(days=args.days, limit=args.limit),
        }

    return {
        "help": ToolSpec(
            name="help",
            category=CATEGORY_META,
            description="Describe the available tools. Pass a tool name for its arguments, "
                        "or a category name for its tools.",
            input_model=HelpInput,
            handler=help_tool,
            examples=("help", "help query=create_task", "help query=github"),
        ),
        "list_capabilities": ToolSpec(
            name="list_capabilities",
            category=CATEGORY_META,
            description="List every tool grouped by category.",
            handler=list_capabilities,
        ),
        "server_status": ToolSpec(
            name="server_status",
            category=CATEGORY_META,
            description="Gateway health: database readiness, tool counts, stored credentials and recent errors.",
            handler=server_status,
        ),
        "tool_usage_stats": ToolSpec(
            name="tool_usage_stats",
            category=CATEGORY_META,
            description="Most-used tools with success rate and average execution time.",
            input_model=UsageStatsInput,
            handler=tool_usage_stats,
            requires_store=True,
        ),
    }
