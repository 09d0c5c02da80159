"""Unit tests for POST /api/scheduled-execution."""

import pytest
from sqlalchemy import select

from agentdesk.infrastructure.adapters.primary.web.routers.scheduled_execution import is_authorized
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentScheduleExecution,
    AIAgent,
)
from agentdesk.tests.conftest import BUDGET_AGENT_ID, TEST_WORKSPACE_ID

BODY = {
    "executionId": "exec-1",
    "agentId": BUDGET_AGENT_ID,
    "taskPrompt": "Summarize budget status",
    "workspaceId": TEST_WORKSPACE_ID,
}


@pytest.fixture
async def execution(test_db, seeded_team):
    test_db.add(AgentScheduleExecution(id="exec-1", workspace_id=TEST_WORKSPACE_ID, ai_agent_id=BUDGET_AGENT_ID))
    await test_db.commit()


async def _status(session_factory) -> str:
    async with session_factory() as session:
        return await session.scalar(
            select(AgentScheduleExecution.status).where(AgentScheduleExecution.id == "exec-1")
        )


@pytest.mark.unit
@pytest.mark.parametrize(
    "authorization,secret,expected",
    [
        (None, None, True),
        ("Bearer anything", "", True),
        ("Bearer s3cret", "s3cret", True),
        ("Bearer wrong", "s3cret", False),
        (None, "s3cret", False),
    ],
)
def test_is_authorized(authorization, secret, expected):
    assert is_authorized(authorization, secret) is expected


@pytest.mark.unit
class TestScheduledExecution:
    async def test_successful_run(self, async_client, execution, session_factory):
        response = await async_client.post("/api/scheduled-execution", json=BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["executionId"] == "exec-1"
        assert data["usage"] == {"inputTokens": 10, "outputTokens": 5}
        assert await _status(session_factory) == "completed"

    async def test_wrong_secret(self, async_client, execution, test_settings):
        test_settings.cron_secret = "s3cret"

        response = await async_client.post(
            "/api/scheduled-execution", json=BODY, headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    async def test_invalid_body(self, async_client, execution):
        response = await async_client.post(
            "/api/scheduled-execution", json={"executionId": "exec-1"}
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request: ")

    async def test_disabled_agent(self, async_client, execution, test_db, session_factory):
        agent = await test_db.get(AIAgent, BUDGET_AGENT_ID)
        agent.is_enabled = False
        await test_db.commit()

        response = await async_client.post("/api/scheduled-execution", json=BODY)

        assert response.status_code == 404
        assert response.json() == {"error": "Agent not found"}
        assert await _status(session_factory) == "failed"

    async def test_missing_provider_key(self, async_client, execution, test_settings, session_factory):
        test_settings.anthropic_api_key = None

        response = await async_client.post("/api/scheduled-execution", json=BODY)

        assert response.status_code == 500
        assert "ANTHROPIC_API_KEY" in response.json()["error"]
        assert await _status(session_factory) == "failed"
