"""Events streamed to the chat client as Server-Sent Events."""

import json
import re
from dataclasses import dataclass, field
from typing import Any


def tool_display_name(tool_name: str) -> str:
    """``createTransaction`` -> ``create Transaction``, ``budget_get_status`` -> ``budget get status``."""
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", tool_name)
    return spaced.replace("_", " ").strip()


@dataclass
class ChatEvent:
    event: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        payload = {"type": self.event, **self.data}
        return f"event: {self.event}\ndata: {json.dumps(payload, default=str)}\n\n"

    @classmethod
    def session(cls, session_id: str, conversation_id: str, is_resumed: bool) -> "ChatEvent":
        return cls(
            "session",
            {"sessionId": session_id, "conversationId": conversation_id, "isResumed": is_resumed},
        )

    @classmethod
    def text(cls, content: str, is_complete: bool = False) -> "ChatEvent":
        return cls("text", {"content": content, "isComplete": is_complete})

    @classmethod
    def reasoning(cls, content: str) -> "ChatEvent":
        return cls("reasoning", {"content": content})

    @classmethod
    def tool_start(cls, tool_name: str, tool_call_id: str, args: dict[str, Any]) -> "ChatEvent":
        return cls(
            "tool_start",
            {
                "toolName": tool_name,
                "toolCallId": tool_call_id,
                "args": args,
                "displayName": tool_display_name(tool_name),
            },
        )

    @classmethod
    def tool_result(
        cls,
        tool_call_id: str,
        tool_name: str,
        result: Any,
        success: bool,
        duration_ms: int,
    ) -> "ChatEvent":
        return cls(
            "tool_result",
            {
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "result": result,
                "success": success,
                "durationMs": duration_ms,
            },
        )

    @classmethod
    def done(
        cls, input_tokens: int, output_tokens: int, cost_usd: float, turn_count: int
    ) -> "ChatEvent":
        return cls(
            "done",
            {
                "usage": {
                    "inputTokens": input_tokens,
                    "outputTokens": output_tokens,
                    "costUsd": cost_usd,
                },
                "turnCount": turn_count,
            },
        )

    @classmethod
    def error(cls, message: str, recoverable: bool = False) -> "ChatEvent":
        return cls("error", {"message": message, "recoverable": recoverable})
