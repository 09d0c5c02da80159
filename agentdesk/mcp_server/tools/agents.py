"""Agent tools: workspace agents, the caller's conversations and schedules."""

from typing import Any

from sqlalchemy import select

from agentdesk.application.services.conversation_service import ConversationService
from agentdesk.domain.exceptions import WorkspaceAccessDeniedError
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Agent,
    AgentSchedule,
    AIAgent,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_conversation_repository import (
    SqlConversationRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)
from agentdesk.mcp_server.context import ToolInvocation
from agentdesk.mcp_server.registry import ToolDefinition, workspace_schema
from agentdesk.mcp_server.results import AccessDeniedError, NotFoundError, ValidationError
from agentdesk.mcp_server.tools.common import PAGINATION_PROPERTIES, id_property, page_bounds

OUTPUT_TONES = ["friendly", "professional", "concise"]
OUTPUT_FORMATS = ["conversational", "bullet_points", "structured"]


def validate_cron_expression(expression: Any) -> str:
    """Five whitespace-separated fields; field syntax is left to the scheduler."""
    if not isinstance(expression, str) or len(expression.split()) != 5:
        raise ValidationError("cron_expression must have five fields")
    return " ".join(expression.split())


def _conversation_service(inv: ToolInvocation) -> ConversationService:
    return ConversationService(
        SqlConversationRepository(inv.session), SqlWorkspaceRepository(inv.session)
    )


# === Agents ===


async def _get_agent(inv: ToolInvocation, agent_id: str) -> Agent:
    agent = await inv.session.scalar(
        select(Agent).where(Agent.id == agent_id, Agent.workspace_id == inv.workspace_id)
    )
    if agent is None:
        raise NotFoundError("Agent not found")
    return agent


async def agent_list(inv: ToolInvocation) -> dict[str, Any]:
    query = select(Agent).where(Agent.workspace_id == inv.workspace_id)
    if inv.get("is_active") is not None:
        query = query.where(Agent.is_active.is_(bool(inv.get("is_active"))))
    agents = (await inv.session.scalars(query.order_by(Agent.name))).all()
    return {
        "agents": [
            {
                "id": a.id,
                "name": a.name,
                "description": a.description,
                "is_active": a.is_active,
                "tools": a.tools or [],
            }
            for a in agents
        ],
        "count": len(agents),
    }


async def agent_get(inv: ToolInvocation) -> dict[str, Any]:
    agent = await _get_agent(inv, inv.require("agent_id"))
    return agent.to_dict()


# === Conversations ===


async def conversation_list(inv: ToolInvocation) -> dict[str, Any]:
    limit, offset = page_bounds(inv.arguments)
    try:
        conversations = await _conversation_service(inv).list_conversations(
            inv.workspace_id, inv.require_user(), limit, offset
        )
    except WorkspaceAccessDeniedError as e:
        raise AccessDeniedError() from e
    return {"conversations": [c.to_dict() for c in conversations], "count": len(conversations)}


async def conversation_get(inv: ToolInvocation) -> dict[str, Any]:
    conversation, messages = await _conversation_service(inv).get_conversation(
        inv.require("conversation_id"), inv.require_user()
    )
    if conversation.workspace_id != inv.workspace_id:
        raise NotFoundError("Conversation not found")
    return {"conversation": conversation.to_dict(), "messages": [m.to_dict() for m in messages]}


async def conversation_delete(inv: ToolInvocation) -> dict[str, Any]:
    conversation_id = inv.require("conversation_id")
    service = _conversation_service(inv)
    conversation, _ = await service.get_conversation(conversation_id, inv.require_user())
    if conversation.workspace_id != inv.workspace_id:
        raise NotFoundError("Conversation not found")
    await service.delete_conversation(conversation_id, inv.require_user())
    return {"message": "Conversation deleted successfully", "conversation_id": conversation_id}


# === Schedules ===


async def _get_schedule(inv: ToolInvocation) -> AgentSchedule:
    schedule = await inv.session.scalar(
        select(AgentSchedule).where(
            AgentSchedule.id == inv.require("schedule_id"),
            AgentSchedule.workspace_id == inv.workspace_id,
        )
    )
    if schedule is None:
        raise NotFoundError("Schedule not found")
    return schedule


def _output_config(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("output_config must be an object")
    if value.get("tone") and value["tone"] not in OUTPUT_TONES:
        raise ValidationError(f"output_config.tone must be one of: {', '.join(OUTPUT_TONES)}")
    if value.get("format") and value["format"] not in OUTPUT_FORMATS:
        raise ValidationError(f"output_config.format must be one of: {', '.join(OUTPUT_FORMATS)}")
    return value


async def schedule_list(inv: ToolInvocation) -> dict[str, Any]:
    query = select(AgentSchedule).where(AgentSchedule.workspace_id == inv.workspace_id)
    if inv.get("agent_id"):
        query = query.where(AgentSchedule.ai_agent_id == inv.get("agent_id"))
    if inv.get("is_enabled") is not None:
        query = query.where(AgentSchedule.is_enabled.is_(bool(inv.get("is_enabled"))))
    schedules = (await inv.session.scalars(query.order_by(AgentSchedule.created_at))).all()
    return {"schedules": [s.to_dict() for s in schedules], "count": len(schedules)}


async def schedule_get(inv: ToolInvocation) -> dict[str, Any]:
    schedule = await _get_schedule(inv)
    return schedule.to_dict()


async def schedule_create(inv: ToolInvocation) -> dict[str, Any]:
    agent_id = inv.require("agent_id")
    ai_agent = await inv.session.get(AIAgent, agent_id)
    if ai_agent is None or not ai_agent.is_enabled:
        raise NotFoundError("Agent not found")

    schedule = AgentSchedule(
        workspace_id=inv.workspace_id,
        ai_agent_id=ai_agent.id,
        name=inv.require("name"),
        cron_expression=validate_cron_expression(inv.require("cron_expression")),
        timezone=inv.get("timezone", "UTC"),
        task_prompt=inv.require("task_prompt"),
        output_config=_output_config(inv.get("output_config")),
        is_enabled=bool(inv.get("is_enabled", True)),
        is_template=False,
    )
    inv.session.add(schedule)
    await inv.session.flush()
    return {"message": "Schedule created successfully", "schedule": schedule.to_dict()}


async def schedule_update(inv: ToolInvocation) -> dict[str, Any]:
    schedule = await _get_schedule(inv)
    values = inv.updates(
        "name",
        "cron_expression",
        "timezone",
        "task_prompt",
        "output_config",
        "is_enabled",
        clearable={"output_config"},
    )
    if "cron_expression" in values:
        values["cron_expression"] = validate_cron_expression(values["cron_expression"])
    if "output_config" in values:
        values["output_config"] = _output_config(values["output_config"])
    for key, value in values.items():
        setattr(schedule, key, value)
    await inv.session.flush()
    return {"message": "Schedule updated successfully", "schedule": schedule.to_dict()}


async def schedule_delete(inv: ToolInvocation) -> dict[str, Any]:
    schedule = await _get_schedule(inv)
    await inv.session.delete(schedule)
    return {"message": "Schedule deleted successfully", "schedule_id": schedule.id}


CONVERSATION_ID = {"conversation_id": id_property("Conversation ID")}
SCHEDULE_ID = {"schedule_id": id_property("Schedule ID")}

SCHEDULE_FIELDS = {
    "name": {"type": "string"},
    "cron_expression": {"type": "string", "description": "Five-field cron expression"},
    "timezone": {"type": "string", "description": "IANA timezone, default UTC"},
    "task_prompt": {"type": "string", "description": "What the agent should do on each run"},
    "output_config": {
        "type": ["object", "null"],
        "properties": {
            "tone": {"type": "string", "enum": OUTPUT_TONES},
            "format": {"type": "string", "enum": OUTPUT_FORMATS},
            "custom_instructions": {"type": "string"},
        },
    },
    "is_enabled": {"type": "boolean"},
}


AGENT_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        "agent_list",
        "List the workspace's agents",
        workspace_schema({"is_active": {"type": "boolean"}}),
        agent_list,
    ),
    ToolDefinition(
        "agent_get",
        "Get a workspace agent",
        workspace_schema({"agent_id": id_property("Agent ID")}, ["agent_id"]),
        agent_get,
    ),
    ToolDefinition(
        "conversation_list",
        "List your agent conversations, most recent first",
        workspace_schema(PAGINATION_PROPERTIES),
        conversation_list,
    ),
    ToolDefinition(
        "conversation_get",
        "Get one of your agent conversations with its messages",
        workspace_schema(CONVERSATION_ID, ["conversation_id"]),
        conversation_get,
    ),
    ToolDefinition(
        "conversation_delete",
        "Delete one of your agent conversations",
        workspace_schema(CONVERSATION_ID, ["conversation_id"]),
        conversation_delete,
    ),
    ToolDefinition(
        "schedule_list",
        "List agent schedules in the workspace",
        workspace_schema(
            {"agent_id": id_property("Only schedules of this agent"), "is_enabled": {"type": "boolean"}}
        ),
        schedule_list,
    ),
    ToolDefinition(
        "schedule_get", "Get an agent schedule", workspace_schema(SCHEDULE_ID, ["schedule_id"]), schedule_get
    ),
    ToolDefinition(
        "schedule_create",
        "Schedule a recurring task for an agent",
        workspace_schema(
            {"agent_id": id_property("Agent template ID"), **SCHEDULE_FIELDS},
            ["agent_id", "name", "cron_expression", "task_prompt"],
        ),
        schedule_create,
    ),
    ToolDefinition(
        "schedule_update",
        "Update an agent schedule",
        workspace_schema({**SCHEDULE_ID, **SCHEDULE_FIELDS}, ["schedule_id"]),
        schedule_update,
    ),
    ToolDefinition(
        "schedule_delete",
        "Delete an agent schedule",
        workspace_schema(SCHEDULE_ID, ["schedule_id"]),
        schedule_delete,
    ),
]
