"""
Agent channel webhook, called by the database when a message is inserted
into a channel.

Responses use a flat ``{"error": ...}`` body like the scheduled execution
endpoint, since the caller is a webhook rather than the web client.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.application.schemas.chat import AgentChannelWebhook
from agentdesk.application.services.agent_channel_service import AgentChannelService
from agentdesk.application.services.delegation_service import DelegationService
from agentdesk.configuration.config import get_settings
from agentdesk.domain.exceptions import (
    AgentNotFoundError,
    EntityNotFoundError,
    NoActiveDeploymentError,
)
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeFactory
from agentdesk.infrastructure.adapters.primary.web.dependencies import (
    get_llm_client,
    get_tool_bridge_factory,
)
from agentdesk.infrastructure.adapters.primary.web.routers.agent_chat import validation_reason
from agentdesk.infrastructure.adapters.primary.web.routers.scheduled_execution import (
    is_authorized,
)
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_db
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_resource_repository import (
    SqlAgentResourceRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_deployment_repository import (
    SqlDeploymentRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["agent-channel"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/agent-channel-message")
async def handle_agent_channel_message(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
    llm: LLMStreamPort = Depends(get_llm_client),
    tool_bridge_factory: ToolBridgeFactory = Depends(get_tool_bridge_factory),
):
    settings = get_settings()
    if not is_authorized(authorization, settings.agent_webhook_secret):
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    try:
        body = AgentChannelWebhook.model_validate(await request.json())
    except ValueError as e:
        reason = validation_reason(e) if isinstance(e, ValidationError) else "body must be valid JSON"
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid request: {reason}")

    service = AgentChannelService(
        SqlAgentResourceRepository(db),
        SqlDeploymentRepository(db),
        DelegationService(llm, tool_bridge_factory, settings),
    )
    try:
        result = await service.handle(body.record)
    except EntityNotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, "Channel not found")
    except NoActiveDeploymentError:
        return _error(status.HTTP_404_NOT_FOUND, "No deployed team")
    except AgentNotFoundError as e:
        return _error(status.HTTP_404_NOT_FOUND, str(e))
    except Exception as e:
        logger.error(f"Agent channel message {body.record.id} failed: {e}", exc_info=True)
        await db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Internal server error")

    await db.commit()
    return result.to_dict()
