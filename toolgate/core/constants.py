"""Centralized constants and enums for toolgate core modules."""

from __future__ import annotations


# ============================================================
# Categories
# ============================================================

CATEGORY_META = "meta"
CATEGORY_OTHER = "other"

# Ordered substring rules for tools registered without a category.
# First match wins; meta prefixes are checked before these.
META_PREFIXES = ("list_", "help")
META_KEYWORDS = ("status", "capabilities")
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("tasks", ("task",)),
    ("memory", ("memory",)),
    ("search", ("search", "research")),
    ("images", ("image",)),
    ("github", ("issue", "pr", "repo")),
    ("deploy", ("deploy",)),
)

# Tools whose absence after boot is logged at error level.
CRITICAL_TOOLS = ("help", "list_capabilities", "server_status")


# ============================================================
# Usage / analytics
# ============================================================

MAX_ERROR_MESSAGE = 512
# tool_usage column widths
MAX_USAGE_TOOL_NAME = 100
MAX_USAGE_CATEGORY = 50
MAX_USAGE_LOOKBACK_DAYS = 30
DEFAULT_USAGE_LOOKBACK_DAYS = 7


# ============================================================
# Tasks
# ============================================================

VALID_TASK_STATUSES = ["not_started", "in_progress", "completed", "blocked", "cancelled"]
VALID_TASK_PRIORITIES = ["low", "medium", "high", "urgent"]
TASK_STATUS_DEFAULT = "not_started"
TASK_PRIORITY_DEFAULT = "medium"
# Statuses that no longer count as open work.
CLOSED_TASK_STATUSES = ("completed", "cancelled")


# ============================================================
# Memory
# ============================================================

VALID_MEMORY_CATEGORIES = ["decision", "preference", "context", "client", "workflow", "other"]
MEMORY_CATEGORY_DEFAULT = "context"


# ============================================================
# Input limits
# ============================================================

MAX_TITLE_LENGTH = 500
MAX_CONTENT_SIZE = 100_000
MAX_NAME_LENGTH = 255
MAX_TAGS = 20
MAX_LIMIT = 100
