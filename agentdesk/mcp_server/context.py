"""Per-process tool context read from the launch environment."""

import os
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentdesk.mcp_server.results import ValidationError


def parse_enabled_tools(value: str | None) -> set[str] | None:
    """``None`` (all tools) when unset or empty."""
    if not value:
        return None
    names = {name.strip() for name in value.split(",") if name.strip()}
    return names or None


@dataclass
class ToolContext:
    """
    Launch context of the tool server.

    Attributes:
        session_factory: Sessions for tool queries, one per call
        default_workspace_id: ``WORKSPACE_ID``; used when a call omits
            ``workspace_id``
        user_id: ``USER_ID``; the caller whose membership is checked. Unset
            for scheduled runs, which may only touch the default workspace
        enabled_tools: ``ENABLED_TOOLS``; ``None`` exposes every tool
    """

    session_factory: async_sessionmaker[AsyncSession]
    default_workspace_id: str | None = None
    user_id: str | None = None
    enabled_tools: set[str] | None = None

    @classmethod
    def from_env(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        environ: Mapping[str, str] = os.environ,
    ) -> "ToolContext":
        return cls(
            session_factory=session_factory,
            default_workspace_id=environ.get("WORKSPACE_ID") or None,
            user_id=environ.get("USER_ID") or None,
            enabled_tools=parse_enabled_tools(environ.get("ENABLED_TOOLS")),
        )

    def resolve_workspace_id(self, arguments: Mapping[str, Any]) -> str:
        workspace_id = arguments.get("workspace_id") or self.default_workspace_id
        if not workspace_id:
            raise ValidationError("workspace_id is required")
        return str(workspace_id)


@dataclass
class ToolInvocation:
    """One tool call after workspace access was granted."""

    session: AsyncSession
    workspace_id: str
    user_id: str | None
    arguments: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        value = self.arguments.get(name)
        return default if value is None else value

    def require(self, name: str) -> Any:
        value = self.arguments.get(name)
        if value is None or value == "":
            raise ValidationError(f"{name} is required")
        return value

    def updates(self, *names: str, clearable: Collection[str] = ()) -> dict[str, Any]:
        """
        Fields among ``names`` present in the call.

        An explicit ``null`` clears a field listed in ``clearable``; for any
        other field it is rejected. No field at all → ``No fields to update``.
        """
        values = {name: self.arguments[name] for name in names if name in self.arguments}
        for name, value in values.items():
            if value is None and name not in clearable:
                raise ValidationError(f"{name} cannot be cleared")
        if not values:
            raise ValidationError("No fields to update")
        return values

    def require_user(self) -> str:
        if not self.user_id:
            raise ValidationError("This tool requires a user context")
        return self.user_id
