"""Fixtures for calling MCP tools through the registry."""

import pytest

from agentdesk.mcp_server.context import ToolContext
from agentdesk.mcp_server.tools import build_registry
from agentdesk.tests.conftest import TEST_USER_ID, TEST_WORKSPACE_ID


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def make_context(session_factory):
    def _make(user_id=TEST_USER_ID, workspace_id=TEST_WORKSPACE_ID, enabled_tools=None):
        return ToolContext(
            session_factory=session_factory,
            default_workspace_id=workspace_id,
            user_id=user_id,
            enabled_tools=enabled_tools,
        )

    return _make


@pytest.fixture
def call_tool(registry, make_context, test_workspace):
    """Call a tool as the workspace owner unless another context is given."""

    async def _call(name, arguments=None, context=None):
        return await registry.call(name, arguments or {}, context or make_context())

    return _call
