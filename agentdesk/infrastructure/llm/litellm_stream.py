"""
LiteLLM streaming adapter.

Implements ``LLMStreamPort`` on top of ``litellm.acompletion(stream=True)``:
- Maps agent provider/model pairs (including the short Anthropic aliases)
  to LiteLLM model identifiers
- Forwards text and reasoning deltas as they arrive
- Accumulates tool call deltas by index and emits each call once complete
- Normalizes usage across provider formats
"""

import json
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from agentdesk.domain.ports.llm_stream_port import (
    LLMStreamRequest,
    StreamChunk,
    StreamEventType,
    ToolCall,
)

logger = logging.getLogger(__name__)

# Short names stored on agent templates
MODEL_ALIASES: dict[str, str] = {
    "sonnet": "claude-sonnet-4-20250514",
    "opus": "claude-opus-4-20250514",
    "haiku": "claude-3-5-haiku-20241022",
}

# LiteLLM routing prefix per agent provider name
PROVIDER_PREFIXES: dict[str, str] = {
    "anthropic": "anthropic",
    "openai": "openai",
    "xai": "xai",
    "google": "gemini",
    "groq": "groq",
    "mistral": "mistral",
    "deepseek": "deepseek",
}


def resolve_model_name(provider: str, model: str) -> str:
    """
    Build the LiteLLM model identifier for an agent.

    Aliases always resolve to Anthropic models regardless of the stored provider.
    """
    if model in MODEL_ALIASES:
        return f"anthropic/{MODEL_ALIASES[model]}"
    prefix = PROVIDER_PREFIXES.get(provider, provider)
    if model.startswith(f"{prefix}/"):
        return model
    return f"{prefix}/{model}"


@dataclass
class _ToolCallTracker:
    id: str
    name: str = ""
    arguments: str = ""


class LiteLLMStreamClient:
    """One streaming model step per ``invoke_stream`` call."""

    def __init__(
        self,
        timeout: int = 300,
        max_retries: int = 2,
        default_max_tokens: int = 4096,
    ) -> None:
        self._timeout = timeout
        self._max_retries = max_retries
        self._default_max_tokens = default_max_tokens

    def _build_kwargs(self, request: LLMStreamRequest) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": resolve_model_name(request.provider, request.model),
            "messages": request.messages,
            "api_key": request.api_key,
            "max_tokens": request.max_tokens or self._default_max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
            "timeout": self._timeout,
            "num_retries": self._max_retries,
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.tools:
            kwargs["tools"] = request.tools
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def invoke_stream(self, request: LLMStreamRequest) -> AsyncIterator[StreamChunk]:
        import litellm

        kwargs = self._build_kwargs(request)
        logger.debug(
            f"Starting LLM stream: model={kwargs['model']}, "
            f"messages={len(request.messages)}, tools={len(request.tools)}"
        )

        trackers: dict[int, _ToolCallTracker] = {}
        finish_reason: str | None = None
        usage: dict[str, int] | None = None

        response = await litellm.acompletion(**kwargs)
        async for chunk in response:
            chunk_usage = getattr(chunk, "usage", None)
            if chunk_usage:
                usage = self._extract_usage(chunk_usage)

            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            choice = choices[0]
            if getattr(choice, "finish_reason", None):
                finish_reason = choice.finish_reason

            delta = getattr(choice, "delta", None)
            if delta is None:
                continue

            content = getattr(delta, "content", None)
            if content:
                yield StreamChunk(StreamEventType.CONTENT, content=content)

            reasoning = getattr(delta, "reasoning_content", None)
            if reasoning:
                yield StreamChunk(StreamEventType.REASONING, content=reasoning)

            for tc in getattr(delta, "tool_calls", None) or []:
                self._accumulate_tool_call(trackers, tc)

        for index in sorted(trackers):
            tracker = trackers[index]
            yield StreamChunk(
                StreamEventType.TOOL_CALL,
                tool_call=ToolCall(
                    id=tracker.id,
                    name=tracker.name,
                    arguments=self._parse_arguments(tracker),
                ),
            )

        if usage:
            yield StreamChunk(
                StreamEventType.USAGE,
                input_tokens=usage["input_tokens"],
                output_tokens=usage["output_tokens"],
            )
        yield StreamChunk(StreamEventType.FINISH, finish_reason=finish_reason or "stop")

    @staticmethod
    def _accumulate_tool_call(trackers: dict[int, _ToolCallTracker], tc: Any) -> None:
        index = getattr(tc, "index", 0) or 0
        if index not in trackers:
            call_id = getattr(tc, "id", None) or f"call_{uuid.uuid4().hex[:8]}"
            trackers[index] = _ToolCallTracker(id=call_id)
        tracker = trackers[index]

        function = getattr(tc, "function", None)
        if function is None:
            return
        name = getattr(function, "name", None)
        if name:
            tracker.name = name
        args_delta = getattr(function, "arguments", None)
        if args_delta:
            tracker.arguments += args_delta

    @staticmethod
    def _parse_arguments(tracker: _ToolCallTracker) -> dict[str, Any]:
        if not tracker.arguments:
            return {}
        try:
            parsed = json.loads(tracker.arguments)
        except json.JSONDecodeError as e:
            logger.warning(
                f"Failed to parse tool arguments for {tracker.name}: {e}. "
                f"Arguments preview: {tracker.arguments[:200]}..."
            )
            return {"_raw": tracker.arguments}
        return parsed if isinstance(parsed, dict) else {"value": parsed}

    @staticmethod
    def _extract_usage(usage: Any) -> dict[str, int]:
        """
        Normalize token usage.

        Handles both OpenAI (prompt/completion) and Anthropic (input/output) names.
        """
        input_tokens = getattr(usage, "prompt_tokens", None)
        if input_tokens is None:
            input_tokens = getattr(usage, "input_tokens", 0)
        output_tokens = getattr(usage, "completion_tokens", None)
        if output_tokens is None:
            output_tokens = getattr(usage, "output_tokens", 0)
        return {"input_tokens": input_tokens or 0, "output_tokens": output_tokens or 0}
