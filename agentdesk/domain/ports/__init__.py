"""
Domain Ports - Hexagonal architecture interfaces.

Ports define contracts that infrastructure adapters implement.
"""

from agentdesk.domain.ports.llm_stream_port import (
    LLMStreamPort,
    LLMStreamRequest,
    StreamChunk,
    StreamEventType,
    ToolCall,
)
from agentdesk.domain.ports.repositories import (
    APIKeyRepository,
    ConversationRepository,
    DeploymentRepository,
)
from agentdesk.domain.ports.tool_bridge_port import (
    ToolBridgeFactory,
    ToolBridgeLaunch,
    ToolBridgePort,
    ToolCallOutcome,
)

__all__ = [
    "LLMStreamPort",
    "LLMStreamRequest",
    "StreamChunk",
    "StreamEventType",
    "ToolCall",
    "APIKeyRepository",
    "ConversationRepository",
    "DeploymentRepository",
    "ToolBridgeFactory",
    "ToolBridgeLaunch",
    "ToolBridgePort",
    "ToolCallOutcome",
]
