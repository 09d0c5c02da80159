"""
AgentChatService: the streaming chat pipeline.

A chat request runs in two phases. ``prepare`` does everything that can
fail with an HTTP status (membership, agent resolution, conversation
lookup) and stores the user message. ``stream`` then yields SSE events;
from that point on failures are reported as an ``error`` event.

Both phases open their own database sessions because the stream outlives
the request handler.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentdesk.application.schemas.chat import AgentChatRequest
from agentdesk.application.services.agent_loop import AgentLoop, open_tool_bridge
from agentdesk.application.services.business_context import (
    build_business_context_instructions,
    parse_business_context,
)
from agentdesk.application.services.config_resolver import ConfigResolver
from agentdesk.application.services.delegation_service import (
    DELEGATION_TOOL_NAME,
    DelegationService,
    delegation_tool_definition,
)
from agentdesk.application.services.prompt_builder import build_chat_prompt, estimate_tokens
from agentdesk.configuration.config import Settings
from agentdesk.domain.exceptions import (
    EntityNotFoundError,
    ProviderNotConfiguredError,
    RepositoryError,
    WorkspaceAccessDeniedError,
)
from agentdesk.domain.model.agent.chat_event import ChatEvent
from agentdesk.domain.model.agent.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
    conversation_title,
)
from agentdesk.domain.model.agent.resolved_config import ResolvedAgentConfig
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort, LLMStreamRequest, ToolCall
from agentdesk.domain.ports.tool_bridge_port import (
    ToolBridgeFactory,
    ToolBridgeLaunch,
    ToolBridgePort,
    ToolCallOutcome,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_conversation_repository import (
    SqlConversationRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_deployment_repository import (
    SqlDeploymentRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

logger = logging.getLogger(__name__)

# USD per 1K tokens
INPUT_COST_PER_1K = 0.003
OUTPUT_COST_PER_1K = 0.015


def calculate_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens * INPUT_COST_PER_1K + output_tokens * OUTPUT_COST_PER_1K) / 1000


@dataclass
class PreparedChat:
    """Everything the stream phase needs, resolved before the first byte is sent."""

    user: SessionUser
    workspace_id: str
    message: str
    config: ResolvedAgentConfig
    conversation_id: str
    is_resumed: bool
    system_prompt: str
    history: list[dict[str, Any]] = field(default_factory=list)


class AgentChatService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        llm: LLMStreamPort,
        tool_bridge_factory: ToolBridgeFactory,
        settings: Settings,
    ):
        self._session_factory = session_factory
        self._llm = llm
        self._tool_bridge_factory = tool_bridge_factory
        self._settings = settings

    async def prepare(self, request: AgentChatRequest, user: SessionUser) -> PreparedChat:
        """
        Validate the request and store the user message.

        Raises:
            WorkspaceAccessDeniedError: The user is not a workspace member
            AgentNotFoundError: Legacy agent missing or inactive
            NoAgentConfiguredError: No team deployed and no agent requested
            EntityNotFoundError: ``conversationId`` does not name one of the
                user's conversations in the workspace
        """
        workspace_id = request.workspace_id
        async with self._session_factory() as session:
            workspace_repo = SqlWorkspaceRepository(session)
            conversation_repo = SqlConversationRepository(session)

            if not await workspace_repo.is_member(workspace_id, user.id):
                raise WorkspaceAccessDeniedError(workspace_id)

            resolver = ConfigResolver(
                SqlDeploymentRepository(session),
                workspace_repo,
                SqlAgentTemplateRepository(session),
                default_provider=self._settings.default_provider,
                default_model=self._settings.default_model,
            )
            config = await resolver.resolve(workspace_id, request.agent_id)

            business_instructions = await self._business_context(workspace_repo, workspace_id)
            system_prompt = build_chat_prompt(
                config.system_prompt, workspace_id, user, business_instructions
            )
            logger.debug(
                f"System prompt for {config.agent_name}: ~{estimate_tokens(system_prompt)} tokens"
            )

            is_resumed = request.conversation_id is not None
            if is_resumed:
                conversation = await conversation_repo.find_by_id(request.conversation_id)
                if (
                    conversation is None
                    or conversation.workspace_id != workspace_id
                    or conversation.user_id != user.id
                ):
                    raise EntityNotFoundError("Conversation", request.conversation_id)
            else:
                conversation = await conversation_repo.save(
                    Conversation(
                        workspace_id=workspace_id,
                        user_id=user.id,
                        agent_id=await self._conversation_agent_id(
                            workspace_repo, workspace_id, config
                        ),
                        title=conversation_title(request.message),
                    )
                )

            history = await conversation_repo.recent_messages(
                conversation.id, self._settings.chat_history_limit
            )
            await conversation_repo.add_message(
                ConversationMessage(
                    conversation_id=conversation.id,
                    role=MessageRole.USER,
                    content=request.message,
                )
            )
            await session.commit()

        return PreparedChat(
            user=user,
            workspace_id=workspace_id,
            message=request.message,
            config=config,
            conversation_id=conversation.id,
            is_resumed=is_resumed,
            system_prompt=system_prompt,
            history=[message.to_llm_message() for message in history],
        )

    @staticmethod
    async def _business_context(workspace_repo: SqlWorkspaceRepository, workspace_id: str) -> str:
        try:
            raw = await workspace_repo.get_business_context(workspace_id)
        except RepositoryError as e:
            logger.warning(f"Failed to load business context for {workspace_id}: {e}")
            return ""
        context = parse_business_context(raw)
        return build_business_context_instructions(context) if context else ""

    @staticmethod
    async def _conversation_agent_id(
        workspace_repo: SqlWorkspaceRepository, workspace_id: str, config: ResolvedAgentConfig
    ) -> str | None:
        if not config.is_team_mode:
            return config.agent_id
        # Team agents live in the template tables; attach to any workspace agent
        workspace_agent = await workspace_repo.find_any_active_agent(workspace_id)
        return workspace_agent.id if workspace_agent else None

    async def stream(self, prepared: PreparedChat) -> AsyncIterator[ChatEvent]:
        """Yield the chat events; the tool bridge is closed when the stream ends."""
        config = prepared.config
        env_var, api_key = self._settings.get_provider_api_key(config.provider)
        if not api_key:
            yield ChatEvent.error(str(ProviderNotConfiguredError(config.provider, env_var)))
            return

        bridge: ToolBridgePort | None = None
        delegated: dict[str, int] = {"inputTokens": 0, "outputTokens": 0}
        try:
            yield ChatEvent.session(
                f"chat-{uuid.uuid4()}", prepared.conversation_id, prepared.is_resumed
            )

            bridge, tools = await open_tool_bridge(
                self._tool_bridge_factory,
                ToolBridgeLaunch(config.tool_names, prepared.workspace_id, prepared.user.id),
            )
            if config.can_delegate:
                tools = [*tools, delegation_tool_definition(config.delegation_targets)]

            loop = AgentLoop(
                self._llm,
                self._tool_executor(prepared, bridge, delegated),
                self._settings.chat_max_steps,
            )
            request = LLMStreamRequest(
                provider=config.provider,
                model=config.model,
                api_key=api_key,
                messages=[
                    {"role": "system", "content": prepared.system_prompt},
                    *prepared.history,
                    {"role": "user", "content": prepared.message},
                ],
                tools=tools,
            )
            async for event in loop.stream(request):
                yield event

            result = loop.result
            # Specialist runs are billed to the conversation that delegated them
            input_tokens = result.input_tokens + delegated["inputTokens"]
            output_tokens = result.output_tokens + delegated["outputTokens"]
            cost = calculate_cost(input_tokens, output_tokens)
            yield ChatEvent.text("", is_complete=True)

            await self._persist_reply(
                prepared.conversation_id, result.text, input_tokens, output_tokens, cost
            )
            logger.info(
                f"Chat {prepared.conversation_id} with {config.agent_name}: {result.steps} steps, "
                f"{input_tokens} input / {output_tokens} output tokens"
            )
            yield ChatEvent.done(input_tokens, output_tokens, cost, result.steps)
        except Exception as e:
            logger.error(f"Chat stream failed for {prepared.conversation_id}: {e}", exc_info=True)
            yield ChatEvent.error(str(e) or "Unknown error")
        finally:
            if bridge is not None:
                await bridge.close()

    def _tool_executor(
        self, prepared: PreparedChat, bridge: ToolBridgePort | None, delegated: dict[str, int]
    ):
        config = prepared.config
        delegation = DelegationService(self._llm, self._tool_bridge_factory, self._settings)

        async def execute(call: ToolCall) -> ToolCallOutcome:
            if call.name == DELEGATION_TOOL_NAME and config.can_delegate:
                result = await delegation.delegate(
                    call.arguments,
                    config.team_config,
                    config.agent_slug,
                    prepared.workspace_id,
                    prepared.user.id,
                )
                for key, tokens in (result.usage or {}).items():
                    delegated[key] = delegated.get(key, 0) + tokens
                return ToolCallOutcome(result.to_dict(), is_error=not result.success)
            if bridge is None:
                return ToolCallOutcome({"error": f"Tool {call.name} is not available"}, True)
            return await bridge.call_tool(call.name, call.arguments)

        return execute

    async def _persist_reply(
        self,
        conversation_id: str,
        text: str,
        input_tokens: int,
        output_tokens: int,
        cost: float,
    ) -> None:
        async with self._session_factory() as session:
            repo = SqlConversationRepository(session)
            if text:
                await repo.add_message(
                    ConversationMessage(
                        conversation_id=conversation_id,
                        role=MessageRole.ASSISTANT,
                        content=text,
                    )
                )
            conversation = await repo.find_by_id(conversation_id)
            if conversation is not None:
                conversation.add_usage(input_tokens, output_tokens, cost)
                await repo.save(conversation)
            await session.commit()
