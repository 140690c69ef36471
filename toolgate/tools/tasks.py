"""Task tools: a small task list plus an inbox of captured items, backed by the store."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from toolgate.core.constants import (
    CLOSED_TASK_STATUSES,
    MAX_CONTENT_SIZE,
    MAX_LIMIT,
    MAX_NAME_LENGTH,
    MAX_TAGS,
    MAX_TITLE_LENGTH,
)
from toolgate.core.errors import InvalidArguments
from toolgate.core.registry import ToolSpec

if TYPE_CHECKING:
    from toolgate.core.services import Services

logger = logging.getLogger(__name__)

CATEGORY = "tasks"

TaskStatus = Literal["not_started", "in_progress", "completed", "blocked", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]

TASK_COLUMNS = (
    "id, title, description, project, status, priority, due_date, tags, "
    "completed_at, created_at, updated_at"
)


class ListTasksInput(BaseModel):
    status: TaskStatus | None = None
    project: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    priority: TaskPriority | None = None
    include_completed: bool = Field(False, description="Include completed and cancelled tasks.")
    limit: int = Field(50, ge=1, le=MAX_LIMIT)


class TaskIdInput(BaseModel):
    task_id: UUID


class CreateTaskInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(None, max_length=MAX_CONTENT_SIZE)
    project: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    status: TaskStatus = "not_started"
    priority: TaskPriority = "medium"
    due_date: date | None = None
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)


class UpdateTaskInput(BaseModel):
    task_id: UUID
    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(None, max_length=MAX_CONTENT_SIZE)
    project: str | None = Field(None, max_length=MAX_NAME_LENGTH)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    tags: list[str] | None = Field(None, max_length=MAX_TAGS)


class DeleteTaskInput(BaseModel):
    task_id: UUID
    hard_delete: bool = Field(False, description="Remove the row instead of marking it cancelled.")


class UrgentTasksInput(BaseModel):
    include_tomorrow: bool = True


class ProcessInboxInput(BaseModel):
    convert_to_tasks: bool = Field(False, description="Turn each unprocessed item into a task.")
    limit: int = Field(20, ge=1, le=MAX_LIMIT)


def _task_title(content: str) -> str:
    first_line = content.strip().splitlines()[0] if content.strip() else "Inbox item"
    return first_line[:200]


def build_tools(svc: Services) -> dict[str, ToolSpec]:
    store = svc.store

    async def list_tasks(args: ListTasksInput) -> dict:
        where: list[str] = []
        params: list[Any] = []
        if args.status:
            where.append("status = %s")
            params.append(args.status)
        elif not args.include_completed:
            where.append("status <> ALL(%s)")
            params.append(list(CLOSED_TASK_STATUSES))
        if args.project:
            where.append("project = %s")
            params.append(args.project)
        if args.priority:
            where.append("priority = %s")
            params.append(args.priority)

        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        params.append(args.limit)
        rows = await store.execute(
            f"""
            SELECT {TASK_COLUMNS} FROM tasks
            {where_clause}
            ORDER BY due_date ASC NULLS LAST, created_at DESC
            LIMIT %s
            """,
            params,
        )
        return {"tasks": rows, "count": len(rows)}

    async def get_task(args: TaskIdInput) -> dict:
        row = await store.execute_one(
            f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = %s", (args.task_id,),
        )
        if row is None:
            return {"error": f"Task {args.task_id} not found"}
        return row

    async def create_task(args: CreateTaskInput) -> dict:
        row = await store.execute_one(
            f"""
            INSERT INTO tasks (title, description, project, status, priority, due_date, tags)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {TASK_COLUMNS}
            """,
            (args.title, args.description, args.project, args.status,
             args.priority, args.due_date, args.tags),
        )
        logger.info("Task created: %s", row["id"] if row else "?")
        return {"created": True, "task": row}

    async def update_task(args: UpdateTaskInput) -> dict:
        changes = args.model_dump(exclude={"task_id"}, exclude_none=True)
        if not changes:
            raise InvalidArguments("Invalid arguments: no fields to update")

        sets = [f"{column} = %s" for column in changes]
        params: list[Any] = list(changes.values())
        if changes.get("status") == "completed":
            sets.append("completed_at = NOW()")
        elif "status" in changes:
            sets.append("completed_at = NULL")
        params.append(args.task_id)

        row = await store.execute_one(
            f"UPDATE tasks SET {', '.join(sets)} WHERE id = %s RETURNING {TASK_COLUMNS}",
            params,
        )
        if row is None:
            return {"error": f"Task {args.task_id} not found"}
        return {"updated": True, "task": row}

    async def complete_task(args: TaskIdInput) -> dict:
        row = await store.execute_one(
            f"""
            UPDATE tasks SET status = 'completed', completed_at = NOW()
            WHERE id = %s
            RETURNING {TASK_COLUMNS}
            """,
            (args.task_id,),
        )
        if row is None:
            return {"error": f"Task {args.task_id} not found"}
        return {"completed": True, "task": row}

    async def delete_task(args: DeleteTaskInput) -> dict:
        if args.hard_delete:
            rows = await store.execute(
                "DELETE FROM tasks WHERE id = %s RETURNING id", (args.task_id,),
            )
        else:
            rows = await store.execute(
                "UPDATE tasks SET status = 'cancelled' WHERE id = %s RETURNING id",
                (args.task_id,),
            )
        if not rows:
            return {"error": f"Task {args.task_id} not found"}
        return {"deleted": True, "hard_delete": args.hard_delete, "task_id": str(args.task_id)}

    async def urgent_tasks(args: UrgentTasksInput) -> dict:
        today = date.today()
        horizon = today + timedelta(days=1 if args.include_tomorrow else 0)
        rows = await store.execute(
            f"""
            SELECT {TASK_COLUMNS} FROM tasks
            WHERE due_date IS NOT NULL AND due_date <= %s
              AND status <> ALL(%s)
            ORDER BY due_date ASC, created_at ASC
            """,
            (horizon, list(CLOSED_TASK_STATUSES)),
        )
        overdue = [r for r in rows if r["due_date"] < today]
        due_today = [r for r in rows if r["due_date"] == today]
        result = {"overdue": overdue, "due_today": due_today}
        if args.include_tomorrow:
            result["due_tomorrow"] = [r for r in rows if r["due_date"] > today]
        result["total"] = sum(len(v) for v in result.values())
        return result

    async def process_inbox(args: ProcessInboxInput) -> dict:
        items = await store.execute(
            """
            SELECT id, content, source, created_at FROM inbox
            WHERE NOT processed
            ORDER BY created_at ASC
            LIMIT %s
            """,
            (args.limit,),
        )
        if not args.convert_to_tasks:
            return {"items": items, "count": len(items)}

        created = []
        for item in items:
            # Task insert and inbox mark land together or not at all.
            async with store.transaction() as conn:
                cur = await conn.execute(
                    "INSERT INTO tasks (title, description) VALUES (%s, %s) RETURNING id, title",
                    (_task_title(item["content"]), item["content"]),
                )
                task = await cur.fetchone()
                await conn.execute(
                    "UPDATE inbox SET processed = TRUE, processed_at = NOW(), task_id = %s WHERE id = %s",
                    (task["id"], item["id"]),
                )
            created.append(task)
        logger.info("Inbox processed: %d items converted to tasks", len(created))
        return {"processed": len(created), "tasks": created}

    def spec(name: str, description: str, model: type[BaseModel], handler, *examples: str) -> ToolSpec:
        return ToolSpec(
            name=name, category=CATEGORY, description=description,
            input_model=model, handler=handler, examples=examples, requires_store=True,
        )

    return {
        "list_tasks": spec(
            "list_tasks", "List open tasks, optionally filtered by status, project or priority.",
            ListTasksInput, list_tasks, "list_tasks project=website priority=high",
        ),
        "get_task": spec("get_task", "Fetch one task by id.", TaskIdInput, get_task),
        "create_task": spec(
            "create_task", "Create a task.", CreateTaskInput, create_task,
            "create_task title='Renew domain' due_date=2025-01-31 priority=high",
        ),
        "update_task": spec(
            "update_task", "Change fields of a task. Setting status=completed stamps completed_at.",
            UpdateTaskInput, update_task,
        ),
        "complete_task": spec("complete_task", "Mark a task completed.", TaskIdInput, complete_task),
        "delete_task": spec(
            "delete_task", "Cancel a task, or remove it entirely with hard_delete=true.",
            DeleteTaskInput, delete_task,
        ),
        "urgent_tasks": spec(
            "urgent_tasks", "Open tasks that are overdue, due today, or due tomorrow.",
            UrgentTasksInput, urgent_tasks,
        ),
        "process_inbox": spec(
            "process_inbox", "Review unprocessed inbox items, optionally converting them into tasks.",
            ProcessInboxInput, process_inbox,
        ),
    }
