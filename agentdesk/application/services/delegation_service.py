"""
DelegationService: lets a head agent hand a task to a team specialist.

Head agents with enabled outgoing delegations are offered the
``delegate_to_agent`` tool. Calls are executed in-process: the specialist
runs a non-streaming tool loop with its own tools and cannot delegate
further.
"""

import logging
from dataclasses import dataclass
from typing import Any

from agentdesk.application.services.agent_loop import AgentLoop, open_tool_bridge
from agentdesk.application.services.prompt_builder import (
    build_delegated_agent_prompt,
    build_delegated_message,
)
from agentdesk.configuration.config import Settings
from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedTeamConfig,
)
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort, LLMStreamRequest, ToolCall
from agentdesk.domain.ports.tool_bridge_port import (
    ToolBridgeFactory,
    ToolBridgeLaunch,
    ToolCallOutcome,
)

logger = logging.getLogger(__name__)

DELEGATION_TOOL_NAME = "delegate_to_agent"


def delegation_tool_definition(delegations: list[DeployedDelegation]) -> dict[str, Any]:
    """OpenAI function definition restricted to the allowed target slugs."""
    slugs = [delegation.to_agent_slug for delegation in delegations]
    return {
        "type": "function",
        "function": {
            "name": DELEGATION_TOOL_NAME,
            "description": (
                "Delegate a task to a specialist agent on your team. "
                "Returns the specialist's response."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "agent_slug": {
                        "type": "string",
                        "enum": slugs,
                        "description": "Slug of the specialist to delegate to",
                    },
                    "task": {
                        "type": "string",
                        "description": "What the specialist should do",
                    },
                    "context": {
                        "type": "string",
                        "description": "Relevant context from the conversation",
                    },
                },
                "required": ["agent_slug", "task"],
            },
        },
    }


@dataclass
class DelegationResult:
    success: bool
    agent_name: str
    agent_slug: str
    response: str
    error: str | None = None
    usage: dict[str, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "agentName": self.agent_name,
            "agentSlug": self.agent_slug,
            "response": self.response,
        }
        if self.error:
            data["error"] = self.error
        if self.usage:
            data["usage"] = self.usage
        return data


class DelegationService:
    def __init__(
        self,
        llm: LLMStreamPort,
        tool_bridge_factory: ToolBridgeFactory,
        settings: Settings,
    ):
        self._llm = llm
        self._tool_bridge_factory = tool_bridge_factory
        self._settings = settings

    async def delegate(
        self,
        arguments: dict[str, Any],
        config: DeployedTeamConfig,
        head_agent_slug: str,
        workspace_id: str,
        user_id: str,
    ) -> DelegationResult:
        """
        Run a delegated task on a specialist.

        Args:
            arguments: ``delegate_to_agent`` input (agent_slug, task, context)
            config: Active team config
            head_agent_slug: The delegating agent
            workspace_id: Workspace of the conversation
            user_id: User of the conversation

        Returns:
            The specialist's response, or a failed result with the error
        """
        agent_slug = str(arguments.get("agent_slug") or "")
        task = str(arguments.get("task") or "")
        context = arguments.get("context")

        logger.info(f"Delegation from {head_agent_slug} to {agent_slug}: {task[:100]}")

        delegation = config.get_delegation(head_agent_slug, agent_slug)
        target = config.get_agent_by_slug(agent_slug) if delegation else None
        if target is None:
            return DelegationResult(
                success=False,
                agent_name="",
                agent_slug=agent_slug,
                response="",
                error=f'Agent "{agent_slug}" not found or is disabled',
            )

        return await self.run_specialist(
            target,
            config,
            build_delegated_message(task, context, delegation),
            workspace_id,
            user_id,
        )

    async def run_specialist(
        self,
        target: DeployedAgent,
        config: DeployedTeamConfig,
        message: str,
        workspace_id: str,
        user_id: str,
    ) -> DelegationResult:
        """Answer ``message`` as ``target`` with its own tools and no further delegation."""
        env_var, api_key = self._settings.get_provider_api_key(target.provider)
        if not api_key:
            return DelegationResult(
                success=False,
                agent_name=target.name,
                agent_slug=target.slug,
                response="",
                error=f"API key not configured: {env_var}",
            )

        system_prompt = build_delegated_agent_prompt(target, config.team_mind, workspace_id)

        bridge, tools = await open_tool_bridge(
            self._tool_bridge_factory,
            ToolBridgeLaunch(target.tool_names, workspace_id, user_id),
        )
        try:

            async def execute(call: ToolCall) -> ToolCallOutcome:
                if bridge is None:
                    return ToolCallOutcome({"error": f"Tool {call.name} is not available"}, True)
                return await bridge.call_tool(call.name, call.arguments)

            loop = AgentLoop(self._llm, execute, self._settings.delegation_max_steps)
            result = await loop.run(
                LLMStreamRequest(
                    provider=target.provider,
                    model=target.model,
                    api_key=api_key,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": message},
                    ],
                    tools=tools,
                )
            )
        except Exception as e:
            logger.error(f"Delegated query to {target.slug} failed: {e}")
            return DelegationResult(
                success=False,
                agent_name=target.name,
                agent_slug=target.slug,
                response="",
                error=str(e) or "Unknown error occurred",
            )
        finally:
            if bridge is not None:
                await bridge.close()

        logger.info(
            f"Delegation to {target.slug} completed: {len(result.text)} chars, "
            f"{result.input_tokens} input / {result.output_tokens} output tokens"
        )
        return DelegationResult(
            success=True,
            agent_name=target.name,
            agent_slug=target.slug,
            response=result.text,
            usage={"inputTokens": result.input_tokens, "outputTokens": result.output_tokens},
        )
