"""
Scheduled execution endpoint, called by the scheduler for each due run.

Responses use a flat ``{"error": ...}`` body because the scheduler reads
that field.
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.application.schemas.chat import ScheduledExecutionRequest
from agentdesk.application.services.schedule_execution_service import ScheduleExecutionService
from agentdesk.configuration.config import get_settings
from agentdesk.domain.exceptions import AgentNotFoundError
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeFactory
from agentdesk.infrastructure.adapters.primary.web.dependencies import (
    get_llm_client,
    get_tool_bridge_factory,
)
from agentdesk.infrastructure.adapters.primary.web.routers.agent_chat import validation_reason
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_db
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["scheduled-execution"])


def is_authorized(authorization: str | None, cron_secret: str | None) -> bool:
    """Without a configured secret every caller is accepted."""
    if not cron_secret:
        return True
    return secrets.compare_digest(authorization or "", f"Bearer {cron_secret}")


@router.post("/scheduled-execution")
async def run_scheduled_execution(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
    llm: LLMStreamPort = Depends(get_llm_client),
    tool_bridge_factory: ToolBridgeFactory = Depends(get_tool_bridge_factory),
):
    settings = get_settings()
    if not is_authorized(authorization, settings.cron_secret):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    try:
        body = ScheduledExecutionRequest.model_validate(await request.json())
    except ValueError as e:
        # pydantic's ValidationError is a ValueError, as is a JSON decode error
        reason = validation_reason(e) if isinstance(e, ValidationError) else "body must be valid JSON"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": f"Invalid request: {reason}"}
        )

    service = ScheduleExecutionService(
        SqlScheduleRepository(db),
        SqlAgentTemplateRepository(db),
        llm,
        tool_bridge_factory,
        settings,
    )
    try:
        result = await service.execute(body)
    except AgentNotFoundError:
        await db.commit()
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Agent not found"})
    except Exception as e:
        await db.commit()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Unknown error"},
        )

    await db.commit()
    return result.to_dict()
