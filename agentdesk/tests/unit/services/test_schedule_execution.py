"""Unit tests for scheduled agent runs."""

import pytest

from agentdesk.application.schemas.chat import OutputConfig, ScheduledExecutionRequest
from agentdesk.application.services.schedule_execution_service import (
    DEFAULT_OUTPUT_INSTRUCTIONS,
    NO_TOOLS_WARNING,
    NO_WORKSPACE_NOTICE,
    TOOLS_REQUIRED_NOTICE,
    ScheduleExecutionService,
    build_execution_context,
    build_output_instructions,
    build_scheduled_task_prompt,
)
from agentdesk.domain.exceptions import AgentNotFoundError, ProviderNotConfiguredError
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentScheduleExecution,
    AIAgent,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)
from agentdesk.tests.conftest import BUDGET_AGENT_ID, TEST_WORKSPACE_ID
from agentdesk.tests.fakes import (
    FailingLLM,
    FakeToolBridge,
    RecordingBridgeFactory,
    ScriptedLLM,
    text_step,
    tool_step,
)

EXECUTION_ID = "exec-1"


@pytest.fixture
async def execution(test_db, seeded_team) -> AgentScheduleExecution:
    row = AgentScheduleExecution(
        id=EXECUTION_ID, workspace_id=TEST_WORKSPACE_ID, ai_agent_id=BUDGET_AGENT_ID
    )
    test_db.add(row)
    await test_db.commit()
    return row


def _service(test_db, test_settings, llm, factory=None) -> ScheduleExecutionService:
    return ScheduleExecutionService(
        SqlScheduleRepository(test_db),
        SqlAgentTemplateRepository(test_db),
        llm,
        factory or RecordingBridgeFactory(FakeToolBridge(["budget_get_status"])),
        test_settings,
    )


def _request(**kwargs) -> ScheduledExecutionRequest:
    values = {
        "execution_id": EXECUTION_ID,
        "agent_id": BUDGET_AGENT_ID,
        "task_prompt": "Summarize budget status",
        "workspace_id": TEST_WORKSPACE_ID,
    }
    values.update(kwargs)
    return ScheduledExecutionRequest(**values)


async def _reload(test_db) -> AgentScheduleExecution:
    row = await test_db.get(AgentScheduleExecution, EXECUTION_ID)
    await test_db.refresh(row)
    return row


@pytest.mark.unit
class TestPromptHelpers:
    def test_default_output_instructions(self):
        assert build_output_instructions(None) == DEFAULT_OUTPUT_INSTRUCTIONS

    def test_tone_format_and_custom_instructions(self):
        text = build_output_instructions(
            OutputConfig(tone="concise", format="bullet_points", custom_instructions="Use emoji")
        )
        assert text.startswith("## Response Style\n- Be extremely concise")
        assert "- Use bullet points for easy scanning" in text
        assert text.endswith("Additional instructions:\nUse emoji")

    def test_context_with_tools(self):
        context = build_execution_context("ws-1", ["budget_get_status", "account_list"])
        assert "- Available Tools: budget_get_status, account_list" in context
        assert TOOLS_REQUIRED_NOTICE in context

    def test_context_without_tools(self):
        context = build_execution_context("ws-1", [])
        assert "- Available Tools: None available" in context
        assert NO_TOOLS_WARNING in context

    def test_context_without_workspace(self):
        assert build_execution_context(None, ["account_list"]) == NO_WORKSPACE_NOTICE

    def test_task_prompt_order(self):
        prompt = build_scheduled_task_prompt("Do it", "ws-1", [], None)
        assert prompt.index("## Execution Context") < prompt.index("Do it")
        assert prompt.endswith(DEFAULT_OUTPUT_INSTRUCTIONS)


@pytest.mark.unit
class TestExecute:
    async def test_successful_run_is_recorded(self, test_db, test_settings, execution):
        llm = ScriptedLLM(
            tool_step("budget_get_status", {"budget_id": "b1"}),
            text_step("Food budget is fine", input_tokens=30, output_tokens=6),
        )
        factory = RecordingBridgeFactory(FakeToolBridge(["budget_get_status"]))
        service = _service(test_db, test_settings, llm, factory)

        result = await service.execute(_request())
        await test_db.commit()

        assert result.to_dict()["success"] is True
        assert result.input_tokens == 50
        row = await _reload(test_db)
        assert row.status == "completed"
        assert row.result == {"message": "Food budget is fine"}
        assert row.tool_calls[0]["name"] == "budget_get_status"
        assert row.tool_calls[0]["input"] == {"budget_id": "b1"}
        assert row.tokens_output == 14
        assert row.started_at is not None and row.completed_at is not None

        assert factory.launches[0].user_id is None
        assert factory.bridge.closed
        user_message = llm.requests[0].messages[1]["content"]
        assert "- Available Tools: budget_get_status" in user_message

    async def test_no_workspace_runs_without_tools(self, test_db, test_settings, execution):
        llm = ScriptedLLM(text_step("I cannot access data"))
        factory = RecordingBridgeFactory(FakeToolBridge(["budget_get_status"]))
        service = _service(test_db, test_settings, llm, factory)

        await service.execute(_request(workspace_id=None))

        assert factory.launches == []
        assert llm.requests[0].tools == []
        assert llm.requests[0].messages[1]["content"].startswith(NO_WORKSPACE_NOTICE)

    async def test_disabled_agent(self, test_db, test_settings, execution):
        agent = await test_db.get(AIAgent, BUDGET_AGENT_ID)
        agent.is_enabled = False
        await test_db.commit()
        service = _service(test_db, test_settings, ScriptedLLM())

        with pytest.raises(AgentNotFoundError):
            await service.execute(_request())
        await test_db.commit()

        row = await _reload(test_db)
        assert row.status == "failed"
        assert row.error_message == "Agent not found"

    async def test_missing_provider_key(self, test_db, test_settings, execution):
        test_settings.anthropic_api_key = None
        service = _service(test_db, test_settings, ScriptedLLM())

        with pytest.raises(ProviderNotConfiguredError):
            await service.execute(_request())
        await test_db.commit()

        row = await _reload(test_db)
        assert row.status == "failed"
        assert "ANTHROPIC_API_KEY" in row.error_message

    async def test_model_failure_is_recorded(self, test_db, test_settings, execution):
        factory = RecordingBridgeFactory(FakeToolBridge(["budget_get_status"]))
        service = _service(test_db, test_settings, FailingLLM("overloaded"), factory)

        with pytest.raises(RuntimeError):
            await service.execute(_request())
        await test_db.commit()

        row = await _reload(test_db)
        assert row.status == "failed"
        assert row.error_message == "overloaded"
        assert factory.bridge.closed
