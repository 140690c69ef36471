"""Tool registry: descriptors, category inference and the name → tool table."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

from pydantic import BaseModel

from toolgate.core.constants import (
    CATEGORY_KEYWORDS,
    CATEGORY_META,
    CATEGORY_OTHER,
    META_KEYWORDS,
    META_PREFIXES,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], Awaitable[Any]]


def infer_category(name: str) -> str:
    """Category for a tool registered without one, from substrings of its name."""
    if name.startswith(META_PREFIXES) or any(k in name for k in META_KEYWORDS):
        return CATEGORY_META
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in name for k in keywords):
            return category
    return CATEGORY_OTHER


class NoArguments(BaseModel):
    """Input model for tools that take no arguments."""


@dataclass(frozen=True)
class ToolSpec:
    """Everything needed to describe and invoke one tool.

    ``input_model`` is a pydantic model: it validates and coerces call
    arguments, and its JSON Schema is what clients see as ``inputSchema``.
    The handler receives the validated model instance.
    """
    name: str
    description: str
    handler: ToolHandler
    input_model: type[BaseModel] = NoArguments
    category: str | None = None
    examples: tuple[str, ...] = ()
    requires_store: bool = False

    def json_schema(self) -> dict:
        return self.input_model.model_json_schema()

    def argument_names(self) -> tuple[list[str], list[str]]:
        """(required, all properties) argument names in declaration order."""
        fields = self.input_model.model_fields
        required = [name for name, info in fields.items() if info.is_required()]
        return required, list(fields)

    def describe(self) -> dict:
        required, properties = self.argument_names()
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "inputSchema": self.json_schema(),
            "required": required,
            "optional": [p for p in properties if p not in required],
            "examples": list(self.examples),
        }


class ToolRegistry:
    """Name → ToolSpec table. Populated at boot, read-only once frozen."""

    def __init__(self):
        self._tools: dict[str, ToolSpec] = {}
        self._frozen = False

    def register(self, spec: ToolSpec) -> ToolSpec:
        """Add ``spec``, filling in an inferred category. Returns the stored spec."""
        if self._frozen:
            raise RuntimeError("Tool registry is frozen")
        if spec.name in self._tools:
            raise KeyError(spec.name)
        if not spec.category:
            spec = dataclasses.replace(spec, category=infer_category(spec.name))
        self._tools[spec.name] = spec
        return spec

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def categories(self) -> list[str]:
        return sorted({spec.category for spec in self._tools.values()})

    def by_category(self) -> dict[str, list[ToolSpec]]:
        grouped: dict[str, list[ToolSpec]] = {}
        for spec in self._tools.values():
            grouped.setdefault(spec.category, []).append(spec)
        return grouped

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
