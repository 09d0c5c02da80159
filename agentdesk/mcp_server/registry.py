"""
Tool registry for the MCP server.

Every tool is workspace scoped. ``ToolRegistry.call`` resolves the
workspace, checks the caller's membership, runs the handler in its own
session and wraps the outcome in a ``ToolResult``.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from agentdesk.application.services.auth_service import validate_workspace_access
from agentdesk.domain.exceptions import EntityNotFoundError, RepositoryError
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)
from agentdesk.mcp_server.context import ToolContext, ToolInvocation
from agentdesk.mcp_server.results import (
    AccessDeniedError,
    ErrorCode,
    ToolError,
    ToolResult,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolInvocation], Awaitable[Any]]

WORKSPACE_ID_PROPERTY = {
    "type": "string",
    "description": "Workspace ID (defaults to the current workspace)",
}


def workspace_schema(
    properties: dict[str, Any] | None = None, required: list[str] | None = None
) -> dict[str, Any]:
    """JSON Schema for a tool input; ``workspace_id`` is always accepted."""
    return {
        "type": "object",
        "properties": {"workspace_id": WORKSPACE_ID_PROPERTY, **(properties or {})},
        "required": list(required or []),
    }


@dataclass
class ToolDefinition:
    """MCP tool definition."""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler


class ToolRegistry:
    """
    Registry for MCP tools.

    Manages tool registration and provides tool discovery.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def register_all(self, tools: list[ToolDefinition]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> ToolDefinition | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_names(self) -> list[str]:
        """List all tool names."""
        return list(self._tools.keys())

    def list_tools(self, enabled: set[str] | None = None) -> list[ToolDefinition]:
        """Registered tools, restricted to ``enabled`` when given."""
        return [tool for tool in self._tools.values() if enabled is None or tool.name in enabled]

    async def call(self, name: str, arguments: dict[str, Any], context: ToolContext) -> ToolResult:
        tool = self.get(name)
        if tool is None or (context.enabled_tools is not None and name not in context.enabled_tools):
            return ToolResult.fail(f"Unknown tool: {name}", ErrorCode.NOT_FOUND)

        try:
            workspace_id = context.resolve_workspace_id(arguments)
            async with context.session_factory() as session:
                await self._authorize(session, context, workspace_id)
                data = await tool.handler(
                    ToolInvocation(session, workspace_id, context.user_id, dict(arguments))
                )
                await session.commit()
            return ToolResult.ok(data)
        except ToolError as e:
            logger.info(f"Tool {name} returned {e.code.value}: {e.message}")
            return ToolResult.fail(e.message, e.code)
        except EntityNotFoundError as e:
            return ToolResult.fail(f"{e.entity_type} not found", ErrorCode.NOT_FOUND)
        except (RepositoryError, SQLAlchemyError) as e:
            logger.error(f"Tool {name} database error: {e}")
            return ToolResult.fail(f"Database error: {e}", ErrorCode.DATABASE)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult.fail(f"Failed to run {name}: {e}", ErrorCode.INTERNAL)

    @staticmethod
    async def _authorize(session, context: ToolContext, workspace_id: str) -> None:
        if context.user_id is None:
            # Scheduled runs have no user and are confined to their workspace
            if workspace_id != context.default_workspace_id:
                raise AccessDeniedError()
            return

        member = await validate_workspace_access(
            SqlWorkspaceRepository(session), context.user_id, workspace_id
        )
        if member is None:
            raise AccessDeniedError()
