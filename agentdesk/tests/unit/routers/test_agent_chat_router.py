"""Unit tests for POST /api/agent-chat."""

import json

import pytest
from pydantic import ValidationError

from agentdesk.application.schemas.chat import AgentChatRequest
from agentdesk.infrastructure.adapters.primary.web.routers.agent_chat import (
    SSE_HEADERS,
    validation_reason,
)
from agentdesk.tests.conftest import TEST_WORKSPACE_ID


def _events(body: str) -> list[dict]:
    """Decode the ``data:`` payloads of an SSE body."""
    return [
        json.loads(line.removeprefix("data: "))
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


@pytest.mark.unit
def test_validation_reason_names_the_field():
    with pytest.raises(ValidationError) as exc_info:
        AgentChatRequest.model_validate({"workspaceId": TEST_WORKSPACE_ID, "message": ""})
    assert validation_reason(exc_info.value).startswith("message: ")


@pytest.mark.unit
class TestAgentChat:
    async def test_streams_events(self, async_client, active_deployment):
        response = await async_client.post(
            "/api/agent-chat", json={"message": "Hi", "workspaceId": TEST_WORKSPACE_ID}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-accel-buffering"] == SSE_HEADERS["X-Accel-Buffering"]
        events = _events(response.text)
        assert [e["type"] for e in events] == ["session", "text", "text", "done"]
        assert events[1]["content"] == "Hello from the team"
        assert "event: session\n" in response.text

    async def test_requires_authentication(self, async_client, sign_in, test_workspace):
        sign_in(None)

        response = await async_client.post(
            "/api/agent-chat", json={"message": "Hi", "workspaceId": TEST_WORKSPACE_ID}
        )

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["type"] == "Unauthorized"
        assert error["message"] == "Unauthorized"
        assert error["retryable"] is False
        assert error["error_id"]
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_invalid_json(self, async_client, test_workspace):
        response = await async_client.post(
            "/api/agent-chat", content=b"not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "body must be valid JSON"

    async def test_missing_message(self, async_client, test_workspace):
        response = await async_client.post(
            "/api/agent-chat", json={"workspaceId": TEST_WORKSPACE_ID}
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "InvalidRequest"
        assert error["message"].startswith("message: ")

    async def test_outsider_is_forbidden(self, async_client, sign_in, outsider_user, active_deployment):
        sign_in(outsider_user)

        response = await async_client.post(
            "/api/agent-chat", json={"message": "Hi", "workspaceId": TEST_WORKSPACE_ID}
        )

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "AccessDenied"

    async def test_workspace_without_agents(self, async_client, test_workspace):
        response = await async_client.post(
            "/api/agent-chat", json={"message": "Hi", "workspaceId": TEST_WORKSPACE_ID}
        )

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "DomainError"
