"""
ScheduleExecutionService: runs one scheduled agent task.

The scheduler creates an execution row and calls the scheduled-execution
endpoint. The run loads the enabled template agent, builds a task prompt
that tells the model which tools it has (or that it has none), runs a
non-streaming tool loop and records the outcome on the execution row.
"""

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from agentdesk.application.schemas.chat import OutputConfig, ScheduledExecutionRequest
from agentdesk.application.services.agent_loop import AgentLoop, open_tool_bridge
from agentdesk.application.services.prompt_builder import (
    SCHEDULED_SYSTEM_PROMPT,
    SECTION_SEPARATOR,
    append_skills,
    apply_rules_to_prompt,
)
from agentdesk.configuration.config import Settings
from agentdesk.domain.exceptions import AgentNotFoundError, ProviderNotConfiguredError
from agentdesk.domain.model.team.team_config import DeployedAgent
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort, LLMStreamRequest, ToolCall
from agentdesk.domain.ports.tool_bridge_port import (
    ToolBridgeFactory,
    ToolBridgeLaunch,
    ToolCallOutcome,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_INSTRUCTIONS = (
    "\n## Response Style\n"
    "- Write naturally, as if messaging a colleague\n"
    "- Don't start by restating the task you were asked to do\n"
    "- Be conversational, not robotic or templated\n"
    "- Focus on what matters most, then details if needed\n"
    '- Skip unnecessary preamble like "Here is the report" or "I have completed the task"'
)

TONE_INSTRUCTIONS: dict[str, list[str]] = {
    "friendly": [
        "- Use a warm, friendly tone - like messaging a colleague",
        "- It's okay to be casual and personable",
    ],
    "professional": [
        "- Use a professional, polished tone",
        "- Keep language clear and business-appropriate",
    ],
    "concise": [
        "- Be extremely concise - get to the point immediately",
        "- Minimize extra words and explanations",
    ],
}

FORMAT_INSTRUCTIONS: dict[str, list[str]] = {
    "conversational": [
        "- Write in natural paragraphs, like a message",
        "- Avoid rigid structure or templates",
    ],
    "bullet_points": [
        "- Use bullet points for easy scanning",
        "- Keep each point brief",
    ],
    "structured": [
        "- Use clear sections with headers",
        "- Organize information logically",
    ],
}

TOOLS_REQUIRED_NOTICE = (
    "IMPORTANT: You MUST use the tools listed above to query real data from the workspace. "
    "Do NOT fabricate, make up, or hallucinate any information. If a tool returns no data, "
    "report that clearly rather than inventing examples."
)

NO_TOOLS_WARNING = (
    "WARNING: No data tools are available for this execution. You cannot query real "
    "workspace data. If this task requires data, clearly state that you cannot complete "
    "it without tool access."
)

NO_WORKSPACE_NOTICE = """## IMPORTANT: No Workspace Context

This scheduled execution has no workspace context, which means NO data tools are available.
You CANNOT query real workspace data (tasks, projects, team members, etc.).

If this task requires data about the workspace, you MUST clearly state:
"I cannot complete this task because I don't have access to workspace data tools. Please ensure the schedule is linked to a workspace."

Do NOT fabricate, make up, or hallucinate any data.

---

"""


def build_output_instructions(config: OutputConfig | None) -> str:
    if config is None:
        return DEFAULT_OUTPUT_INSTRUCTIONS

    lines = ["## Response Style"]
    if config.tone:
        lines.extend(TONE_INSTRUCTIONS.get(config.tone, []))
    if config.format:
        lines.extend(FORMAT_INSTRUCTIONS.get(config.format, []))
    lines.append("- Don't start by restating the task you were asked to do")
    lines.append('- Skip unnecessary preamble like "Here is the report"')
    if config.custom_instructions:
        lines.extend(["", "Additional instructions:", config.custom_instructions])
    return "\n".join(lines)


def build_execution_context(workspace_id: str | None, tool_names: list[str]) -> str:
    """Header placed before the task prompt of a scheduled run."""
    if not workspace_id:
        return NO_WORKSPACE_NOTICE

    available = ", ".join(tool_names) if tool_names else "None available"
    notice = TOOLS_REQUIRED_NOTICE if tool_names else NO_TOOLS_WARNING
    return (
        "## Execution Context\n"
        f"- Workspace ID: {workspace_id}\n"
        "- Execution Type: Scheduled Task\n"
        f"- Available Tools: {available}\n\n"
        f"{notice}\n\n---\n\n"
    )


def build_scheduled_task_prompt(
    task_prompt: str,
    workspace_id: str | None,
    tool_names: list[str],
    output_config: OutputConfig | None,
) -> str:
    return (
        build_execution_context(workspace_id, tool_names)
        + task_prompt
        + SECTION_SEPARATOR
        + build_output_instructions(output_config)
    )


def build_scheduled_system_prompt(agent: DeployedAgent) -> str:
    prompt = agent.system_prompt or SCHEDULED_SYSTEM_PROMPT
    prompt = apply_rules_to_prompt(prompt, agent.rules)
    return append_skills(prompt, [(s.name, s.content) for s in agent.skills])


@dataclass
class ScheduledExecutionResult:
    execution_id: str
    duration_ms: int
    input_tokens: int
    output_tokens: int

    def to_dict(self) -> dict:
        return {
            "success": True,
            "executionId": self.execution_id,
            "duration": self.duration_ms,
            "usage": {"inputTokens": self.input_tokens, "outputTokens": self.output_tokens},
        }


class ScheduleExecutionService:
    def __init__(
        self,
        schedule_repo: SqlScheduleRepository,
        template_repo: SqlAgentTemplateRepository,
        llm: LLMStreamPort,
        tool_bridge_factory: ToolBridgeFactory,
        settings: Settings,
    ):
        self._schedule_repo = schedule_repo
        self._template_repo = template_repo
        self._llm = llm
        self._tool_bridge_factory = tool_bridge_factory
        self._settings = settings

    async def execute(self, request: ScheduledExecutionRequest) -> ScheduledExecutionResult:
        """
        Run a scheduled task and record its outcome.

        The execution row is updated in the caller's session; the caller
        commits. Any failure after the run started is recorded on the row
        with status ``failed`` before the error is re-raised.

        Raises:
            AgentNotFoundError: The agent is missing or disabled
            ProviderNotConfiguredError: No API key for the agent's provider
        """
        started = time.monotonic()
        await self._schedule_repo.mark_running(request.execution_id, datetime.now(UTC))

        try:
            return await self._run(request, started)
        except AgentNotFoundError:
            await self._mark_failed(request.execution_id, "Agent not found", started)
            raise
        except Exception as e:
            logger.error(f"Scheduled execution {request.execution_id} failed: {e}")
            await self._mark_failed(request.execution_id, str(e) or "Unknown error", started)
            raise

    async def _run(
        self, request: ScheduledExecutionRequest, started: float
    ) -> ScheduledExecutionResult:
        agent = await self._template_repo.load_agent(request.agent_id)
        if agent is None:
            raise AgentNotFoundError(request.agent_id)

        env_var, api_key = self._settings.get_provider_api_key(agent.provider)
        if not api_key:
            raise ProviderNotConfiguredError(agent.provider, env_var)

        logger.info(
            f"Scheduled execution {request.execution_id}: agent {agent.name} "
            f"with {len(agent.tool_names)} tools, workspace {request.workspace_id or 'none'}"
        )

        # Without a workspace the tool server has nothing to scope queries to
        tool_names = agent.tool_names if request.workspace_id else []
        bridge, tools = await open_tool_bridge(
            self._tool_bridge_factory,
            ToolBridgeLaunch(tool_names, request.workspace_id, None),
        )
        try:

            async def execute(call: ToolCall) -> ToolCallOutcome:
                if bridge is None:
                    return ToolCallOutcome({"error": f"Tool {call.name} is not available"}, True)
                return await bridge.call_tool(call.name, call.arguments)

            loop = AgentLoop(self._llm, execute, self._settings.schedule_max_steps)
            result = await loop.run(
                LLMStreamRequest(
                    provider=agent.provider,
                    model=agent.model,
                    api_key=api_key,
                    messages=[
                        {"role": "system", "content": build_scheduled_system_prompt(agent)},
                        {
                            "role": "user",
                            "content": build_scheduled_task_prompt(
                                request.task_prompt,
                                request.workspace_id,
                                [tool["function"]["name"] for tool in tools],
                                request.output_config,
                            ),
                        },
                    ],
                    tools=tools,
                )
            )
        finally:
            if bridge is not None:
                await bridge.close()

        duration_ms = self._elapsed_ms(started)
        await self._schedule_repo.mark_finished(
            request.execution_id,
            status="completed",
            completed_at=datetime.now(UTC),
            duration_ms=duration_ms,
            result={"message": result.text},
            tool_calls=[call.to_dict() for call in result.tool_calls],
            tokens_input=result.input_tokens,
            tokens_output=result.output_tokens,
        )
        logger.info(
            f"Scheduled execution {request.execution_id} finished in {duration_ms}ms "
            f"after {result.steps} steps ({len(result.tool_calls)} tool calls)"
        )
        return ScheduledExecutionResult(
            execution_id=request.execution_id,
            duration_ms=duration_ms,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
        )

    async def _mark_failed(self, execution_id: str, error: str, started: float) -> None:
        await self._schedule_repo.mark_finished(
            execution_id,
            status="failed",
            completed_at=datetime.now(UTC),
            duration_ms=self._elapsed_ms(started),
            error_message=error,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
