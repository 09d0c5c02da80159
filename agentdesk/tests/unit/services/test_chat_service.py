"""Unit tests for the streaming chat pipeline."""

import pytest
from sqlalchemy import select

from agentdesk.application.schemas.chat import AgentChatRequest
from agentdesk.application.services.chat_service import AgentChatService, calculate_cost
from agentdesk.domain.exceptions import (
    EntityNotFoundError,
    NoAgentConfiguredError,
    WorkspaceAccessDeniedError,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentConversation,
    AgentMessage,
    Workspace,
)
from agentdesk.tests.conftest import TEST_WORKSPACE_ID
from agentdesk.tests.fakes import (
    FailingLLM,
    FakeToolBridge,
    RecordingBridgeFactory,
    ScriptedLLM,
    text_step,
    tool_step,
)


def _service(session_factory, settings, llm, factory=None) -> AgentChatService:
    return AgentChatService(session_factory, llm, factory or RecordingBridgeFactory(), settings)


def _request(message="How are my accounts?", **kwargs) -> AgentChatRequest:
    return AgentChatRequest(message=message, workspace_id=TEST_WORKSPACE_ID, **kwargs)


async def _collect(service, prepared):
    return [event async for event in service.stream(prepared)]


@pytest.mark.unit
class TestPrepare:
    async def test_creates_conversation_and_stores_user_message(
        self, session_factory, test_settings, active_deployment, session_user, test_db
    ):
        service = _service(session_factory, test_settings, ScriptedLLM())

        prepared = await service.prepare(_request(), session_user)

        assert prepared.is_resumed is False
        assert prepared.config.agent_slug == "finance-lead"
        assert prepared.history == []
        conversation = await test_db.get(AgentConversation, prepared.conversation_id)
        assert conversation.title == "How are my accounts?"
        messages = (await test_db.execute(select(AgentMessage))).scalars().all()
        assert [(m.role, m.content) for m in messages] == [("user", "How are my accounts?")]

    async def test_business_context_leads_the_prompt(
        self, session_factory, test_settings, active_deployment, session_user, test_db
    ):
        workspace = await test_db.get(Workspace, TEST_WORKSPACE_ID)
        workspace.business_context = {"company_name": "ACME"}
        await test_db.commit()
        service = _service(session_factory, test_settings, ScriptedLLM())

        prepared = await service.prepare(_request(), session_user)

        assert prepared.system_prompt.startswith("# Business Context\n\n- Company: ACME")

    async def test_non_member_is_rejected(
        self, session_factory, test_settings, active_deployment, outsider_user
    ):
        service = _service(session_factory, test_settings, ScriptedLLM())

        with pytest.raises(WorkspaceAccessDeniedError):
            await service.prepare(_request(), outsider_user)

    async def test_no_agent_configured(self, session_factory, test_settings, test_workspace, member_user):
        service = _service(session_factory, test_settings, ScriptedLLM())

        with pytest.raises(NoAgentConfiguredError):
            await service.prepare(_request(), member_user)

    async def test_resumed_conversation_loads_history(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        service = _service(session_factory, test_settings, ScriptedLLM(text_step("All good")))
        first = await service.prepare(_request("First question"), session_user)
        await _collect(service, first)

        second = await service.prepare(
            _request("Follow up", conversation_id=first.conversation_id), session_user
        )

        assert second.is_resumed is True
        assert second.history == [
            {"role": "user", "content": "First question"},
            {"role": "assistant", "content": "All good"},
        ]

    async def test_foreign_conversation_is_not_found(
        self, session_factory, test_settings, active_deployment, session_user, member_user
    ):
        service = _service(session_factory, test_settings, ScriptedLLM())
        owned = await service.prepare(_request(), session_user)

        with pytest.raises(EntityNotFoundError):
            await service.prepare(
                _request(conversation_id=owned.conversation_id), member_user
            )


@pytest.mark.unit
class TestStream:
    async def test_text_answer_event_sequence(
        self, session_factory, test_settings, active_deployment, session_user, test_db
    ):
        llm = ScriptedLLM(text_step("You have 2 accounts", input_tokens=100, output_tokens=50))
        factory = RecordingBridgeFactory(FakeToolBridge(["account_list"]))
        service = _service(session_factory, test_settings, llm, factory)
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        assert [e.event for e in events] == ["session", "text", "text", "done"]
        assert events[0].data["conversationId"] == prepared.conversation_id
        assert events[2].data == {"content": "", "isComplete": True}
        assert events[3].data["usage"] == {
            "inputTokens": 100,
            "outputTokens": 50,
            "costUsd": calculate_cost(100, 50),
        }
        assert factory.launches[0].tool_names == ["account_list"]
        assert factory.bridge.closed

        conversation = await test_db.get(AgentConversation, prepared.conversation_id)
        await test_db.refresh(conversation)
        assert conversation.total_input_tokens == 100
        assert conversation.total_output_tokens == 50

    async def test_head_agent_is_offered_delegation_tool(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        llm = ScriptedLLM(text_step("Hi"))
        factory = RecordingBridgeFactory(FakeToolBridge(["account_list"]))
        service = _service(session_factory, test_settings, llm, factory)
        prepared = await service.prepare(_request(), session_user)

        await _collect(service, prepared)

        tool_names = [tool["function"]["name"] for tool in llm.requests[0].tools]
        assert tool_names == ["account_list", "delegate_to_agent"]

    async def test_tool_call_goes_through_bridge(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        llm = ScriptedLLM(tool_step("account_list", {"type": "checking"}), text_step("Listed"))
        factory = RecordingBridgeFactory(FakeToolBridge(["account_list"]))
        service = _service(session_factory, test_settings, llm, factory)
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        assert [e.event for e in events] == [
            "session",
            "tool_start",
            "tool_result",
            "text",
            "text",
            "done",
        ]
        assert factory.bridge.calls == [("account_list", {"type": "checking"})]
        assert events[-1].data["turnCount"] == 2

    async def test_delegation_runs_specialist(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        llm = ScriptedLLM(
            tool_step(
                "delegate_to_agent",
                {"agent_slug": "budget-analyst", "task": "Check food budget"},
            ),
            text_step("Food budget is 80% used"),
            text_step("Your food budget is 80% used."),
        )
        service = _service(session_factory, test_settings, llm)
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        result = next(e for e in events if e.event == "tool_result")
        assert result.data["success"] is True
        assert result.data["result"]["agentSlug"] == "budget-analyst"
        assert result.data["result"]["response"] == "Food budget is 80% used"
        delegated_system = llm.requests[1].messages[0]["content"]
        assert delegated_system.startswith("You analyse budgets.")

    async def test_delegated_usage_counts_toward_conversation(
        self, session_factory, test_settings, active_deployment, session_user, test_db
    ):
        llm = ScriptedLLM(
            tool_step(
                "delegate_to_agent",
                {"agent_slug": "budget-analyst", "task": "Check food budget"},
            ),
            text_step("Food budget is 80% used", input_tokens=200, output_tokens=40),
            text_step("Your food budget is 80% used.", input_tokens=30, output_tokens=12),
        )
        service = _service(session_factory, test_settings, llm)
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        # Head agent: 20 + 30 input, 8 + 12 output; specialist: 200 input, 40 output
        assert events[-1].data["usage"] == {
            "inputTokens": 250,
            "outputTokens": 60,
            "costUsd": calculate_cost(250, 60),
        }
        conversation = await test_db.get(AgentConversation, prepared.conversation_id)
        await test_db.refresh(conversation)
        assert conversation.total_input_tokens == 250
        assert conversation.total_output_tokens == 60

    async def test_missing_api_key_yields_single_error(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        test_settings.anthropic_api_key = None
        service = _service(session_factory, test_settings, ScriptedLLM())
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        assert [e.event for e in events] == ["error"]
        assert "ANTHROPIC_API_KEY" in events[0].data["message"]

    async def test_model_failure_becomes_error_event(
        self, session_factory, test_settings, active_deployment, session_user
    ):
        factory = RecordingBridgeFactory(FakeToolBridge(["account_list"]))
        service = _service(session_factory, test_settings, FailingLLM("upstream down"), factory)
        prepared = await service.prepare(_request(), session_user)

        events = await _collect(service, prepared)

        assert [e.event for e in events] == ["session", "error"]
        assert events[1].data["message"] == "upstream down"
        assert factory.bridge.closed


@pytest.mark.unit
def test_calculate_cost():
    assert calculate_cost(1000, 1000) == pytest.approx(0.018)
