"""
LLM Stream Port - Domain interface for streaming LLM invocation.

Adapters translate provider deltas into ``StreamChunk`` values. Tool calls
are emitted only once fully assembled, so consumers never see partial
argument JSON.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class StreamEventType(str, Enum):
    """Types of events in LLM stream."""

    CONTENT = "content"  # Text content chunk
    REASONING = "reasoning"  # Thinking/reasoning chunk
    TOOL_CALL = "tool_call"  # Complete tool call
    USAGE = "usage"  # Token usage for the step
    FINISH = "finish"  # Stream finished


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamChunk:
    event_type: StreamEventType
    content: str | None = None
    tool_call: ToolCall | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str | None = None


@dataclass
class LLMStreamRequest:
    """One model step.

    Attributes:
        provider: Provider name as stored on the agent (anthropic, openai, ...)
        model: Model name or alias as stored on the agent
        api_key: Provider API key
        messages: OpenAI-format messages, system prompt first
        tools: OpenAI-format function tool definitions
    """

    provider: str
    model: str
    api_key: str
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] = field(default_factory=list)
    max_tokens: int | None = None
    temperature: float | None = None


@runtime_checkable
class LLMStreamPort(Protocol):
    def invoke_stream(self, request: LLMStreamRequest) -> AsyncIterator[StreamChunk]:
        """Stream one model step."""
        ...
