"""Agent conversation history endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.application.services.conversation_service import ConversationService
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.infrastructure.adapters.primary.web.dependencies import get_current_user
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_db
from agentdesk.infrastructure.adapters.secondary.persistence.sql_conversation_repository import (
    SqlConversationRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def get_conversation_service(db: AsyncSession = Depends(get_db)) -> ConversationService:
    return ConversationService(SqlConversationRepository(db), SqlWorkspaceRepository(db))


@router.get("")
async def list_conversations(
    workspace_id: str = Query(..., alias="workspaceId"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: SessionUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversations = await service.list_conversations(workspace_id, user.id, limit, offset)
    return {"conversations": [c.to_dict() for c in conversations]}


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user: SessionUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation, messages = await service.get_conversation(conversation_id, user.id)
    return {"conversation": conversation.to_dict(), "messages": [m.to_dict() for m in messages]}


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    user: SessionUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
    db: AsyncSession = Depends(get_db),
) -> None:
    await service.delete_conversation(conversation_id, user.id)
    await db.commit()
