"""
Request models for the agent chat, scheduled execution and agent channel
endpoints.

Chat clients send camelCase keys and may use the snake_case field names as
well. The agent channel webhook delivers database rows in snake_case.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentChatRequest(CamelModel):
    """Body of ``POST /api/agent-chat``."""

    message: str = Field(..., min_length=1, max_length=10000)
    agent_id: str | None = None
    workspace_id: str = Field(..., min_length=1)
    conversation_id: str | None = None


class OutputConfig(BaseModel):
    """How a scheduled run should phrase its answer."""

    tone: Literal["friendly", "professional", "concise"] | None = None
    format: Literal["conversational", "bullet_points", "structured"] | None = None
    custom_instructions: str | None = None


class ScheduledExecutionRequest(CamelModel):
    """Body of ``POST /api/scheduled-execution``."""

    execution_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    task_prompt: str = Field(..., min_length=1)
    workspace_id: str | None = None
    output_config: OutputConfig | None = None



class ChannelMessageRecord(BaseModel):
    """The inserted ``messages`` row as delivered by the database webhook."""

    id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    profile_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    is_agent_request: bool = False
    agent_request_id: str | None = None


class AgentChannelWebhook(BaseModel):
    """Body of ``POST /api/agent-channel-message``."""

    type: str = "INSERT"
    table: str = "messages"
    record: ChannelMessageRecord
