"""
Multi-step tool loop shared by chat, delegation and scheduled runs.

Each step streams one model response. When the model asks for tools, the
calls are executed in order, their results are appended as ``tool``
messages and the next step starts. The loop ends when a step produces no
tool calls or the step budget is spent.
"""

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from agentdesk.domain.model.agent.chat_event import ChatEvent
from agentdesk.domain.ports.llm_stream_port import (
    LLMStreamPort,
    LLMStreamRequest,
    StreamEventType,
    ToolCall,
)
from agentdesk.domain.ports.tool_bridge_port import (
    ToolBridgeFactory,
    ToolBridgeLaunch,
    ToolBridgePort,
    ToolCallOutcome,
)

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[ToolCall], Awaitable[ToolCallOutcome]]


@dataclass
class ToolCallRecord:
    name: str
    input: dict[str, Any]
    timestamp: str
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "input": self.input, "timestamp": self.timestamp}


@dataclass
class AgentLoopResult:
    text: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    steps: int = 0
    tool_calls: list[ToolCallRecord] = field(default_factory=list)


def tool_message_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


class AgentLoop:
    """
    Drives the model through up to ``max_steps`` steps.

    ``stream`` yields ``text``, ``reasoning``, ``tool_start`` and
    ``tool_result`` events and fills ``result`` as it goes; ``run`` drains
    the stream for callers that only need the final answer.
    """

    def __init__(self, llm: LLMStreamPort, execute_tool: ToolExecutor, max_steps: int) -> None:
        self._llm = llm
        self._execute_tool = execute_tool
        self._max_steps = max_steps
        self.result = AgentLoopResult()

    async def stream(self, request: LLMStreamRequest) -> AsyncIterator[ChatEvent]:
        messages = list(request.messages)
        text_parts: list[str] = []

        for step in range(self._max_steps):
            self.result.steps = step + 1
            step_request = LLMStreamRequest(
                provider=request.provider,
                model=request.model,
                api_key=request.api_key,
                messages=messages,
                tools=request.tools,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
            )

            step_text: list[str] = []
            tool_calls: list[ToolCall] = []
            async for chunk in self._llm.invoke_stream(step_request):
                if chunk.event_type == StreamEventType.CONTENT and chunk.content:
                    step_text.append(chunk.content)
                    yield ChatEvent.text(chunk.content)
                elif chunk.event_type == StreamEventType.REASONING and chunk.content:
                    yield ChatEvent.reasoning(chunk.content)
                elif chunk.event_type == StreamEventType.TOOL_CALL and chunk.tool_call:
                    tool_calls.append(chunk.tool_call)
                elif chunk.event_type == StreamEventType.USAGE:
                    self.result.input_tokens += chunk.input_tokens
                    self.result.output_tokens += chunk.output_tokens

            text_parts.extend(step_text)
            if not tool_calls:
                break

            messages.append(
                {
                    "role": "assistant",
                    "content": "".join(step_text) or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in tool_calls
                    ],
                }
            )

            for call in tool_calls:
                yield ChatEvent.tool_start(call.name, call.id, call.arguments)
                started = time.monotonic()
                outcome = await self._safe_execute(call)
                duration_ms = int((time.monotonic() - started) * 1000)
                self.result.tool_calls.append(
                    ToolCallRecord(
                        name=call.name,
                        input=call.arguments,
                        timestamp=datetime.now(UTC).isoformat(),
                        success=not outcome.is_error,
                    )
                )
                yield ChatEvent.tool_result(
                    call.id, call.name, outcome.content, not outcome.is_error, duration_ms
                )
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": tool_message_content(outcome.content),
                    }
                )
        else:
            logger.info(f"Agent loop stopped after reaching max steps ({self._max_steps})")

        self.result.text = "".join(text_parts)

    async def run(self, request: LLMStreamRequest) -> AgentLoopResult:
        async for _event in self.stream(request):
            pass
        return self.result

    async def _safe_execute(self, call: ToolCall) -> ToolCallOutcome:
        """Tool failures become error results the model can react to."""
        try:
            return await self._execute_tool(call)
        except Exception as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return ToolCallOutcome(content={"error": str(e)}, is_error=True)


async def open_tool_bridge(
    factory: ToolBridgeFactory, launch: ToolBridgeLaunch
) -> tuple[ToolBridgePort | None, list[dict[str, Any]]]:
    """
    Start a tool bridge for ``launch.tool_names``.

    Returns ``(None, [])`` when the agent has no tools or the bridge fails to
    start; the run then continues without tools. A returned bridge must be
    closed by the caller.
    """
    if not launch.tool_names:
        return None, []

    bridge = factory(launch)
    try:
        await bridge.start()
        tools = await bridge.list_tools()
    except Exception as e:
        logger.error(f"Failed to start tool bridge, continuing without tools: {e}")
        await bridge.close()
        return None, []

    logger.info(f"Tool bridge connected with {len(tools)} tools")
    return bridge, tools
