"""Module loader: imports each tool module and registers what it exports.

Modules are listed explicitly in TOOL_MODULES. A module that fails to import,
whose builder raises, or that exports something malformed is skipped with an
error log; the other modules still load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Mapping

from toolgate.core.constants import CRITICAL_TOOLS
from toolgate.core.errors import ConfigurationFatal, ModuleLoadError
from toolgate.core.registry import ToolSpec

if TYPE_CHECKING:
    from toolgate.core.services import Services

logger = logging.getLogger(__name__)

ToolBuilder = Callable[["Services"], Mapping[str, ToolSpec]]


def _import_meta() -> ToolBuilder:
    from toolgate.tools import meta
    return meta.build_tools


def _import_tasks() -> ToolBuilder:
    from toolgate.tools import tasks
    return tasks.build_tools


def _import_memory() -> ToolBuilder:
    from toolgate.tools import memory
    return memory.build_tools


def _import_search() -> ToolBuilder:
    from toolgate.tools import search
    return search.build_tools


def _import_github() -> ToolBuilder:
    from toolgate.tools import github
    return github.build_tools


# Load order is registration order, which is also tools/list order.
TOOL_MODULES: tuple[tuple[str, Callable[[], ToolBuilder]], ...] = (
    ("meta", _import_meta),
    ("tasks", _import_tasks),
    ("memory", _import_memory),
    ("search", _import_search),
    ("github", _import_github),
)


@dataclass
class ModuleLoadResult:
    """Outcome of loading one tool module."""
    module_id: str
    import_path: str
    loaded_tool_count: int = 0
    load_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.load_error is None


def _collect(module_id: str, exported: object) -> list[ToolSpec]:
    """Validate a module's export; raises ModuleLoadError on a malformed shape."""
    if not isinstance(exported, Mapping):
        raise ModuleLoadError(f"{module_id}: expected a mapping of tools, got {type(exported).__name__}")
    specs: list[ToolSpec] = []
    for key, spec in exported.items():
        if not isinstance(spec, ToolSpec):
            raise ModuleLoadError(f"{module_id}: entry {key!r} is not a ToolSpec")
        if key != spec.name:
            raise ModuleLoadError(f"{module_id}: entry {key!r} names tool {spec.name!r}")
        specs.append(spec)
    return specs


def load_tools(
    svc: Services,
    modules: tuple[tuple[str, Callable[[], ToolBuilder]], ...] = TOOL_MODULES,
) -> list[ModuleLoadResult]:
    """Load every module into ``svc.registry`` and freeze it.

    Raises ConfigurationFatal on a tool name registered by two modules, or
    when no tool at all could be registered.
    """
    registry = svc.registry
    owners: dict[str, str] = {}
    results: list[ModuleLoadResult] = []

    for module_id, importer in modules:
        result = ModuleLoadResult(module_id=module_id, import_path=f"toolgate.tools.{module_id}")
        results.append(result)
        try:
            builder = importer()
            specs = _collect(module_id, builder(svc))
        except Exception as exc:
            result.load_error = str(exc) or type(exc).__name__
            logger.error("Failed to load tool module %s: %s", module_id, result.load_error, exc_info=True)
            continue

        if not specs:
            result.load_error = "module exports no tools"
            logger.warning("Tool module %s exports no tools", module_id)
            continue

        for spec in specs:
            if spec.name in owners:
                raise ConfigurationFatal(
                    f"Tool name collision: {spec.name!r} registered by both "
                    f"{owners[spec.name]!r} and {module_id!r}"
                )
            registry.register(spec)
            owners[spec.name] = module_id
        result.loaded_tool_count = len(specs)
        logger.info("Loaded %d tools from %s", len(specs), module_id)

    if len(registry) == 0:
        raise ConfigurationFatal("No tools registered - nothing to serve")

    missing = [name for name in CRITICAL_TOOLS if name not in registry]
    if missing:
        logger.error("Critical tools missing after load: %s", ", ".join(missing))

    registry.freeze()
    logger.info(
        "Tool registry ready: %d tools in %d categories (%d/%d modules loaded)",
        len(registry), len(registry.categories()),
        sum(1 for r in results if r.ok), len(results),
    )
    return results
