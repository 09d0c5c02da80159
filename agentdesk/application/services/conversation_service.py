"""ConversationService: read and delete a user's agent conversations."""

import logging

from agentdesk.domain.exceptions import EntityNotFoundError, WorkspaceAccessDeniedError
from agentdesk.domain.model.agent.conversation import Conversation, ConversationMessage
from agentdesk.domain.ports.repositories import ConversationRepository
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        workspace_repo: SqlWorkspaceRepository,
    ):
        self._conversation_repo = conversation_repo
        self._workspace_repo = workspace_repo

    async def list_conversations(
        self, workspace_id: str, user_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]:
        await self._require_member(workspace_id, user_id)
        return await self._conversation_repo.list_for_user(workspace_id, user_id, limit, offset)

    async def get_conversation(
        self, conversation_id: str, user_id: str
    ) -> tuple[Conversation, list[ConversationMessage]]:
        conversation = await self._get_owned(conversation_id, user_id)
        messages = await self._conversation_repo.list_messages(conversation_id)
        return conversation, messages

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        await self._get_owned(conversation_id, user_id)
        await self._conversation_repo.delete(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")

    async def _get_owned(self, conversation_id: str, user_id: str) -> Conversation:
        """Other users' conversations are reported as missing."""
        conversation = await self._conversation_repo.find_by_id(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise EntityNotFoundError("Conversation", conversation_id)
        await self._require_member(conversation.workspace_id, user_id)
        return conversation

    async def _require_member(self, workspace_id: str, user_id: str) -> None:
        if not await self._workspace_repo.is_member(workspace_id, user_id):
            raise WorkspaceAccessDeniedError(workspace_id)
