"""Search tools: Brave web search and Perplexity research, keyed from the credential vault."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from toolgate.core.registry import ToolSpec
from toolgate.tools.upstream import request_json

if TYPE_CHECKING:
    from toolgate.core.services import Services

CATEGORY = "search"

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

BRAVE_CREDENTIAL = "brave_search"
PERPLEXITY_CREDENTIAL = "perplexity"

DEEP_RESEARCH_MODEL = "sonar-deep-research"
QUICK_SEARCH_MODEL = "sonar-pro"


class WebSearchInput(BaseModel):
    query: str = Field(..., min_length=1, max_length=400)
    count: int = Field(10, ge=1, le=20)


class DeepResearchInput(BaseModel):
    query: str = Field(..., min_length=1)
    focus_areas: list[str] | None = None


class QuickSearchInput(BaseModel):
    query: str = Field(..., min_length=1)


def _answer(data: dict) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""


def build_tools(svc: Services) -> dict[str, ToolSpec]:

    async def _perplexity(model: str, content: str) -> dict:
        api_key = await svc.vault.get(PERPLEXITY_CREDENTIAL)
        return await request_json(
            svc.http, "Perplexity", "POST", PERPLEXITY_URL,
            headers={"Authorization": f"Bearer {api_key}"},
            json={"model": model, "messages": [{"role": "user", "content": content}]},
        )

    async def web_search(args: WebSearchInput) -> dict:
        api_key = await svc.vault.get(BRAVE_CREDENTIAL)
        data = await request_json(
            svc.http, "Brave Search", "GET", BRAVE_SEARCH_URL,
            headers={"Accept": "application/json", "X-Subscription-Token": api_key},
            params={"q": args.query, "count": args.count},
        )
        results = ((data or {}).get("web") or {}).get("results") or []
        return {"query": args.query, "results": results, "total": len(results)}

    async def deep_research(args: DeepResearchInput) -> dict:
        content = args.query
        if args.focus_areas:
            content += "\n\nFocus areas: " + ", ".join(args.focus_areas)
        data = await _perplexity(DEEP_RESEARCH_MODEL, content) or {}
        return {
            "query": args.query,
            "answer": _answer(data),
            "citations": data.get("citations") or [],
        }

    async def quick_search(args: QuickSearchInput) -> dict:
        data = await _perplexity(QUICK_SEARCH_MODEL, args.query) or {}
        return {"query": args.query, "answer": _answer(data)}

    return {
        "web_search": ToolSpec(
            name="web_search",
            category=CATEGORY,
            description="Search the web with Brave Search.",
            input_model=WebSearchInput,
            handler=web_search,
            examples=("web_search query='postgres advisory locks' count=5",),
        ),
        "deep_research": ToolSpec(
            name="deep_research",
            category=CATEGORY,
            description="In-depth research with citations (Perplexity Sonar Deep Research). Slow.",
            input_model=DeepResearchInput,
            handler=deep_research,
        ),
        "quick_search": ToolSpec(
            name="quick_search",
            category=CATEGORY,
            description="Short factual answer for a simple question (Perplexity Sonar Pro).",
            input_model=QuickSearchInput,
            handler=quick_search,
        ),
    }
