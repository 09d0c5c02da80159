"""
Tool bridge backed by the bundled MCP tool server.

One bridge is launched per agent run. The server is restricted to the
agent's tools through ``ENABLED_TOOLS`` and scoped to the caller through
``WORKSPACE_ID`` and ``USER_ID``.
"""

import json
import logging
import shlex
import sys
from typing import Any

from agentdesk.configuration.config import Settings
from agentdesk.domain.exceptions import ToolBridgeError
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeLaunch, ToolCallOutcome
from agentdesk.infrastructure.mcp.subprocess_client import MCPSubprocessClient, MCPToolSchema

logger = logging.getLogger(__name__)


def to_openai_tool(tool: MCPToolSchema) -> dict[str, Any]:
    """Convert an MCP tool schema to an OpenAI function tool definition."""
    parameters = tool.inputSchema or {"type": "object", "properties": {}}
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description or "",
            "parameters": parameters,
        },
    }


def parse_tool_content(content: list[dict[str, Any]]) -> Any:
    """Join text parts and decode them as JSON when possible."""
    text = "".join(part.get("text", "") for part in content if part.get("type") == "text")
    if not text:
        return content
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def server_command(settings: Settings) -> tuple[str, list[str]]:
    if settings.mcp_server_command:
        parts = shlex.split(settings.mcp_server_command)
        return parts[0], parts[1:]
    return sys.executable, ["-m", "agentdesk.mcp_server"]


class MCPToolBridge:
    """``ToolBridgePort`` implementation over ``MCPSubprocessClient``."""

    def __init__(self, launch: ToolBridgeLaunch, settings: Settings) -> None:
        command, args = server_command(settings)
        env = {
            "ENABLED_TOOLS": ",".join(launch.tool_names),
            "DATABASE_URL": settings.sqlalchemy_url,
            "LOG_LEVEL": settings.log_level,
        }
        if launch.workspace_id:
            env["WORKSPACE_ID"] = launch.workspace_id
        if launch.user_id:
            env["USER_ID"] = launch.user_id
        self._client = MCPSubprocessClient(
            command=command, args=args, env=env, timeout=settings.mcp_request_timeout
        )

    async def start(self) -> None:
        if not await self._client.connect():
            raise ToolBridgeError("Failed to start MCP tool server")

    async def list_tools(self) -> list[dict[str, Any]]:
        return [to_openai_tool(tool) for tool in await self._client.list_tools()]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolCallOutcome:
        result = await self._client.call_tool(name, arguments)
        content = parse_tool_content(result.content)
        is_error = result.isError or (
            isinstance(content, dict) and content.get("success") is False
        )
        return ToolCallOutcome(content=content, is_error=is_error)

    async def close(self) -> None:
        await self._client.disconnect()


def mcp_tool_bridge_factory(settings: Settings):
    """Build a ``ToolBridgeFactory`` bound to ``settings``."""

    def factory(launch: ToolBridgeLaunch) -> MCPToolBridge:
        return MCPToolBridge(launch, settings)

    return factory
