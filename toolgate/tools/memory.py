"""Memory tools: durable notes (decisions, preferences, context) keyed by category and tags."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from toolgate.core.constants import (
    MAX_CONTENT_SIZE,
    MAX_LIMIT,
    MAX_NAME_LENGTH,
    MAX_TAGS,
    MAX_TITLE_LENGTH,
)
from toolgate.core.registry import ToolSpec

if TYPE_CHECKING:
    from toolgate.core.services import Services

logger = logging.getLogger(__name__)

CATEGORY = "memory"

MemoryCategory = Literal["decision", "preference", "context", "client", "workflow", "other"]

MEMORY_COLUMNS = "id, category, title, content, tags, project, created_at, updated_at"


class SaveMemoryInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_SIZE)
    category: MemoryCategory = "context"
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    project: str | None = Field(None, max_length=MAX_NAME_LENGTH)


class SearchMemoryInput(BaseModel):
    query: str | None = Field(None, description="Case-insensitive text matched against title and content.")
    category: MemoryCategory | None = None
    tags: list[str] | None = Field(None, description="Only memories carrying all of these tags.")
    limit: int = Field(20, ge=1, le=MAX_LIMIT)


class RecentMemoriesInput(BaseModel):
    limit: int = Field(10, ge=1, le=MAX_LIMIT)
    category: MemoryCategory | None = None


class DeleteMemoryInput(BaseModel):
    memory_id: UUID


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_tools(svc: Services) -> dict[str, ToolSpec]:
    store = svc.store

    async def save_memory(args: SaveMemoryInput) -> dict:
        row = await store.execute_one(
            f"""
            INSERT INTO memory (category, title, content, tags, project)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {MEMORY_COLUMNS}
            """,
            (args.category, args.title, args.content, args.tags, args.project),
        )
        return {"saved": True, "memory": row}

    async def search_memory(args: SearchMemoryInput) -> dict:
        where: list[str] = []
        params: list[Any] = []
        if args.query:
            pattern = f"%{_escape_like(args.query)}%"
            where.append("(title ILIKE %s OR content ILIKE %s)")
            params.extend([pattern, pattern])
        if args.category:
            where.append("category = %s")
            params.append(args.category)
        if args.tags:
            where.append("tags @> %s")
            params.append(args.tags)

        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        params.append(args.limit)
        rows = await store.execute(
            f"""
            SELECT {MEMORY_COLUMNS} FROM memory
            {where_clause}
            ORDER BY created_at DESC
            LIMIT %s
            """,
            params,
        )
        return {"memories": rows, "count": len(rows)}

    async def recent_memories(args: RecentMemoriesInput) -> dict:
        if args.category:
            rows = await store.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memory WHERE category = %s ORDER BY created_at DESC LIMIT %s",
                (args.category, args.limit),
            )
        else:
            rows = await store.execute(
                f"SELECT {MEMORY_COLUMNS} FROM memory ORDER BY created_at DESC LIMIT %s",
                (args.limit,),
            )
        return {"memories": rows, "count": len(rows)}

    async def delete_memory(args: DeleteMemoryInput) -> dict:
        rows = await store.execute(
            "DELETE FROM memory WHERE id = %s RETURNING id", (args.memory_id,),
        )
        if not rows:
            return {"error": f"Memory {args.memory_id} not found"}
        return {"deleted": True, "memory_id": str(args.memory_id)}

    return {
        "save_memory": ToolSpec(
            name="save_memory",
            category=CATEGORY,
            description="Save a memory (decision, preference, client context, workflow note).",
            input_model=SaveMemoryInput,
            handler=save_memory,
            examples=("save_memory title='Invoice cadence' content='Bill on the 1st' category=workflow",),
            requires_store=True,
        ),
        "search_memory": ToolSpec(
            name="search_memory",
            category=CATEGORY,
            description="Search memories by text, category and tags.",
            input_model=SearchMemoryInput,
            handler=search_memory,
            requires_store=True,
        ),
        "recent_memories": ToolSpec(
            name="recent_memories",
            category=CATEGORY,
            description="Most recently saved memories.",
            input_model=RecentMemoriesInput,
            handler=recent_memories,
            requires_store=True,
        ),
        "delete_memory": ToolSpec(
            name="delete_memory",
            category=CATEGORY,
            description="Delete a memory by id.",
            input_model=DeleteMemoryInput,
            handler=delete_memory,
            requires_store=True,
        ),
    }
