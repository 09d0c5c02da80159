"""
MCP server entry point.

Uses the ``mcp`` SDK low-level ``Server`` over stdio. Tool results are
returned as a single text part holding the ``ToolResult`` JSON. Logs go to
stderr; stdout is reserved for JSON-RPC.
"""

import asyncio
import logging
import sys

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from agentdesk.configuration.config import get_settings
from agentdesk.configuration.logging_config import configure_logging
from agentdesk.mcp_server.context import ToolContext
from agentdesk.mcp_server.registry import ToolRegistry
from agentdesk.mcp_server.tools import build_registry

logger = logging.getLogger(__name__)

SERVER_NAME = "agentdesk-tools"


def create_server(registry: ToolRegistry, context: ToolContext) -> Server:
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in registry.list_tools(context.enabled_tools)
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> list[types.TextContent]:
        result = await registry.call(name, arguments or {}, context)
        return [types.TextContent(type="text", text=result.to_json())]

    return server


async def serve() -> None:
    from agentdesk.infrastructure.adapters.secondary.persistence.database import (
        async_session_factory,
        dispose_database,
    )

    context = ToolContext.from_env(async_session_factory)
    registry = build_registry()
    exposed = registry.list_tools(context.enabled_tools)
    logger.info(
        f"Starting {SERVER_NAME} with {len(exposed)} of {len(registry.list_names())} tools "
        f"(workspace={context.default_workspace_id or 'none'})"
    )

    server = create_server(registry, context)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await dispose_database()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, stream=sys.stderr)
    asyncio.run(serve())


if __name__ == "__main__":
    main()
