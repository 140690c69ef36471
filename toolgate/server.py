"""toolgate MCP server. Entry point for the tool-calling gateway.

Boot order: validate environment → initialize store (non-fatal) → load tool
modules (empty registry is fatal) → start usage recorder → stdio protocol
(fatal if it cannot attach) → admin HTTP (best effort).

stdout belongs to the protocol. Every log line goes to stderr or log files.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from toolgate import __version__
from toolgate.config import Config, LogConfig, load_config, validate_environment
from toolgate.core.dispatch import CallResult
from toolgate.core.errors import ConfigurationFatal
from toolgate.core.loader import load_tools
from toolgate.core.registry import ToolRegistry
from toolgate.core.services import Services, create_services

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

logger = logging.getLogger("toolgate")


def configure_logging(log_config: LogConfig) -> None:
    """Root logging to stderr, plus error.log / combined.log when a directory is configured."""
    logging.basicConfig(
        level=getattr(logging, log_config.level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    if not log_config.directory:
        return
    log_dir = Path(log_config.directory)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.warning("Cannot create log directory %s - file logging disabled", log_dir, exc_info=True)
        return
    root = logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)
    error_handler = logging.FileHandler(log_dir / "error.log")
    error_handler.setLevel(logging.ERROR)
    combined_handler = logging.FileHandler(log_dir / "combined.log")
    for handler in (error_handler, combined_handler):
        handler.setFormatter(formatter)
        root.addHandler(handler)


# ============================================================
# Line protocol (MCP over stdio)
# ============================================================

def tool_listing(registry: ToolRegistry) -> list[types.Tool]:
    return [
        types.Tool(name=spec.name, description=spec.description, inputSchema=spec.json_schema())
        for spec in registry
    ]


def tool_result(result: CallResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=result.text())],
        isError=not result.success,
    )


def create_mcp_server(svc: Services) -> Server:
    """Low-level MCP server whose two handlers both go through the dispatcher."""
    server = Server(svc.config.server_name, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return tool_listing(svc.registry)

    # The dispatcher owns argument validation, so the SDK's is turned off.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        return tool_result(await svc.dispatcher.call_tool(name, arguments))

    return server


async def serve_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        logger.info("stdio transport attached")
        await server.run(read_stream, write_stream, server.create_initialization_options())


# ============================================================
# Process lifecycle
# ============================================================

def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    logger.error("Unhandled exception in event loop: %s", context.get("message"), exc_info=exc)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: KeyboardInterrupt still ends asyncio.run()
            logger.debug("Signal handler for %s not installed", sig)


def _remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            pass


async def run_gateway(config: Config) -> int:
    """Boot, serve until stdio closes or a signal arrives, then shut down. Returns the exit code."""
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    logger.info("Starting toolgate %s", __version__)
    warnings = validate_environment(config)
    if warnings:
        logger.warning("Configuration warnings:")
        for warning in warnings:
            logger.warning("  - %s", warning)

    svc = create_services(config)
    await svc.store.initialize()

    try:
        load_tools(svc)
    except ConfigurationFatal as e:
        logger.critical("Startup aborted: %s", e)
        await svc.aclose()
        return 1

    svc.usage.start()

    stop = asyncio.Event()
    _install_signal_handlers(loop, stop)
    stdio_task = loop.create_task(serve_stdio(create_mcp_server(svc)), name="stdio")

    from toolgate.api.http import start_admin_http
    try:
        admin = await start_admin_http(svc)
    except Exception:
        logger.exception("Admin HTTP failed to start - continuing without it")
        admin = None

    stop_task = loop.create_task(stop.wait(), name="signals")
    done, _ = await asyncio.wait({stdio_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

    exit_code = 0
    if stdio_task in done:
        exc = stdio_task.exception()
        if exc is not None:
            logger.critical("stdio transport failed", exc_info=exc)
            exit_code = 1
        else:
            logger.info("stdio closed by client")
    else:
        logger.info("Shutdown signal received")

    for task in (stdio_task, stop_task):
        if not task.done():
            task.cancel()
    await asyncio.gather(stdio_task, stop_task, return_exceptions=True)
    _remove_signal_handlers(loop)

    if admin is not None:
        await admin.stop()
    await svc.aclose()
    logger.info("toolgate stopped")
    return exit_code


def main():
    """Run the toolgate gateway on stdio."""
    config = load_config()
    configure_logging(config.log)
    try:
        exit_code = asyncio.run(run_gateway(config))
    except KeyboardInterrupt:
        exit_code = 0
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
