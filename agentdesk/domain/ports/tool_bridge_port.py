"""
Tool Bridge Port - Domain interface for the tool server subprocess.

The bridge is launched per chat (or per delegated/scheduled run) with the
agent's tool names and the caller's workspace, and must be closed when the
run ends.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class ToolCallOutcome:
    content: Any
    is_error: bool = False


@dataclass
class ToolBridgeLaunch:
    tool_names: list[str]
    workspace_id: str | None
    user_id: str | None


class ToolBridgePort(Protocol):
    async def start(self) -> None:
        """Launch the tool server and complete the protocol handshake."""
        ...

    async def list_tools(self) -> list[dict[str, Any]]:
        """Available tools as OpenAI-format function definitions."""
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolCallOutcome:
        ...

    async def close(self) -> None:
        ...


ToolBridgeFactory = Callable[[ToolBridgeLaunch], ToolBridgePort]
