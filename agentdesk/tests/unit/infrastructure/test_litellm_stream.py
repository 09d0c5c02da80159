"""Unit tests for the LiteLLM streaming adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from agentdesk.domain.ports.llm_stream_port import LLMStreamRequest, StreamEventType
from agentdesk.infrastructure.llm.litellm_stream import LiteLLMStreamClient, resolve_model_name


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None, reasoning=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls, reasoning_content=reasoning)
    choice = SimpleNamespace(delta=delta, finish_reason=finish_reason)
    return SimpleNamespace(choices=[choice], usage=usage)


def _tool_delta(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


class _Stream:
    def __init__(self, chunks):
        self._chunks = chunks

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk


def _request(**kwargs) -> LLMStreamRequest:
    return LLMStreamRequest(
        provider="anthropic",
        model="sonnet",
        api_key="sk-test",
        messages=[{"role": "user", "content": "hi"}],
        **kwargs,
    )


async def _collect(client, request):
    return [chunk async for chunk in client.invoke_stream(request)]


@pytest.mark.unit
class TestResolveModelName:
    @pytest.mark.parametrize(
        "provider,model,expected",
        [
            ("anthropic", "sonnet", "anthropic/claude-sonnet-4-20250514"),
            ("openai", "haiku", "anthropic/claude-3-5-haiku-20241022"),
            ("openai", "gpt-4o", "openai/gpt-4o"),
            ("google", "gemini-1.5-pro", "gemini/gemini-1.5-pro"),
            ("openai", "openai/gpt-4o", "openai/gpt-4o"),
            ("together_ai", "llama-3", "together_ai/llama-3"),
        ],
    )
    def test_resolution(self, provider, model, expected):
        assert resolve_model_name(provider, model) == expected


@pytest.mark.unit
class TestInvokeStream:
    async def test_text_and_usage(self):
        stream = _Stream(
            [
                _chunk(content="Hello "),
                _chunk(content="world", finish_reason="stop"),
                SimpleNamespace(choices=[], usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3)),
            ]
        )
        client = LiteLLMStreamClient()

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream
            chunks = await _collect(client, _request())

        assert [c.event_type for c in chunks] == [
            StreamEventType.CONTENT,
            StreamEventType.CONTENT,
            StreamEventType.USAGE,
            StreamEventType.FINISH,
        ]
        assert chunks[2].input_tokens == 12
        assert chunks[2].output_tokens == 3
        assert chunks[3].finish_reason == "stop"

        kwargs = mock_acompletion.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4-20250514"
        assert kwargs["stream"] is True
        assert kwargs["max_tokens"] == 4096
        assert "tools" not in kwargs

    async def test_tool_calls_are_assembled_by_index(self):
        stream = _Stream(
            [
                _chunk(tool_calls=[_tool_delta(0, "call_a", "account_list", '{"type":')]),
                _chunk(tool_calls=[_tool_delta(1, "call_b", "budget_list", "")]),
                _chunk(tool_calls=[_tool_delta(0, arguments=' "checking"}')]),
                _chunk(finish_reason="tool_calls"),
            ]
        )
        tools = [{"type": "function", "function": {"name": "account_list"}}]

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream
            chunks = await _collect(LiteLLMStreamClient(), _request(tools=tools))

        calls = [c.tool_call for c in chunks if c.event_type == StreamEventType.TOOL_CALL]
        assert [(c.id, c.name, c.arguments) for c in calls] == [
            ("call_a", "account_list", {"type": "checking"}),
            ("call_b", "budget_list", {}),
        ]
        assert chunks[-1].finish_reason == "tool_calls"
        assert mock_acompletion.call_args.kwargs["tool_choice"] == "auto"

    async def test_invalid_arguments_are_kept_raw(self):
        stream = _Stream([_chunk(tool_calls=[_tool_delta(0, "call_a", "account_list", "{oops")])])

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream
            chunks = await _collect(LiteLLMStreamClient(), _request())

        assert chunks[0].tool_call.arguments == {"_raw": "{oops"}

    async def test_reasoning_and_anthropic_usage_names(self):
        stream = _Stream(
            [
                _chunk(
                    reasoning="thinking",
                    usage=SimpleNamespace(
                        prompt_tokens=None, input_tokens=7, completion_tokens=None, output_tokens=2
                    ),
                )
            ]
        )

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream
            chunks = await _collect(LiteLLMStreamClient(), _request(temperature=0.2))

        assert chunks[0].event_type == StreamEventType.REASONING
        assert (chunks[1].input_tokens, chunks[1].output_tokens) == (7, 2)
        assert mock_acompletion.call_args.kwargs["temperature"] == 0.2

    async def test_provider_errors_propagate(self):
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.side_effect = Exception("Rate limit exceeded: 429")

            with pytest.raises(Exception, match="429"):
                await _collect(LiteLLMStreamClient(), _request())
