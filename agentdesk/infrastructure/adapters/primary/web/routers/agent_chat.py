"""Streaming agent chat endpoint."""

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentdesk.application.schemas.chat import AgentChatRequest
from agentdesk.application.services.chat_service import AgentChatService, PreparedChat
from agentdesk.configuration.config import get_settings
from agentdesk.domain.exceptions import InvalidRequestError
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeFactory
from agentdesk.infrastructure.adapters.primary.web.dependencies import (
    get_current_user,
    get_llm_client,
    get_tool_bridge_factory,
)
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_session_factory
from agentdesk.infrastructure.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["agent-chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def validation_reason(error: ValidationError) -> str:
    """First validation problem as ``field: message``."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first['msg']}" if location else first["msg"]


async def parse_chat_request(request: Request) -> AgentChatRequest:
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequestError("body must be valid JSON") from e
    try:
        return AgentChatRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(validation_reason(e)) from e


async def sse_stream(service: AgentChatService, prepared: PreparedChat) -> AsyncIterator[str]:
    async for event in service.stream(prepared):
        yield event.to_sse()


@router.post("/agent-chat")
@limiter.limit(settings.rate_limit_chat)
async def agent_chat(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    llm: LLMStreamPort = Depends(get_llm_client),
    tool_bridge_factory: ToolBridgeFactory = Depends(get_tool_bridge_factory),
) -> StreamingResponse:
    """
    Chat with the workspace's agent team (or a single legacy agent).

    Errors found before streaming starts are returned as JSON with an HTTP
    status; later failures arrive as an ``error`` event.
    """
    chat_request = await parse_chat_request(request)
    service = AgentChatService(session_factory, llm, tool_bridge_factory, settings)
    prepared = await service.prepare(chat_request, user)
    logger.info(
        f"Chat for user {user.id} in workspace {prepared.workspace_id} "
        f"with {prepared.config.agent_name} (conversation {prepared.conversation_id})"
    )
    return StreamingResponse(
        sse_stream(service, prepared),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
