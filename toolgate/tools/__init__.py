"""Tool modules. Each exports ``build_tools(svc) -> dict[str, ToolSpec]``.

Modules are wired up explicitly in :data:`toolgate.core.loader.TOOL_MODULES`.
"""
