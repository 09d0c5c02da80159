"""Tool families served by the MCP tool server."""

from agentdesk.mcp_server.registry import ToolRegistry
from agentdesk.mcp_server.tools.agents import AGENT_TOOLS
from agentdesk.mcp_server.tools.finance import FINANCE_TOOLS
from agentdesk.mcp_server.tools.knowledge import KNOWLEDGE_TOOLS
from agentdesk.mcp_server.tools.messaging import MESSAGING_TOOLS


def build_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_all(FINANCE_TOOLS)
    registry.register_all(KNOWLEDGE_TOOLS)
    registry.register_all(MESSAGING_TOOLS)
    registry.register_all(AGENT_TOOLS)
    return registry


__all__ = ["build_registry"]
