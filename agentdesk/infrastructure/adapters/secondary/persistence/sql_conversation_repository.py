import logging

from sqlalchemy import delete, select

from agentdesk.domain.model.agent.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
)
from agentdesk.domain.ports.repositories import ConversationRepository
from agentdesk.infrastructure.adapters.secondary.common.base_repository import (
    BaseRepository,
    handle_db_errors,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentConversation as DBConversation,
    AgentMessage as DBMessage,
)

logger = logging.getLogger(__name__)

_HISTORY_ROLES = (MessageRole.USER.value, MessageRole.ASSISTANT.value)


class SqlConversationRepository(BaseRepository[Conversation, DBConversation], ConversationRepository):
    """Conversations and their messages.

    History is read newest-first with a limit and reversed, so callers always
    get the most recent exchange in chronological order.
    """

    _model_class = DBConversation

    @handle_db_errors("Conversation")
    async def save(self, conversation: Conversation) -> Conversation:
        return await super().save(conversation)

    @handle_db_errors("Conversation")
    async def list_for_user(
        self, workspace_id: str, user_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]:
        query = (
            select(DBConversation)
            .where(DBConversation.workspace_id == workspace_id, DBConversation.user_id == user_id)
            .order_by(DBConversation.updated_at.desc(), DBConversation.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(query)
        return [self._to_domain(row) for row in result.scalars().all()]

    @handle_db_errors("Conversation")
    async def delete(self, conversation_id: str) -> bool:
        await self._session.execute(
            delete(DBMessage).where(DBMessage.conversation_id == conversation_id)
        )
        return await super().delete(conversation_id)

    @handle_db_errors("AgentMessage")
    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        self._session.add(
            DBMessage(
                id=message.id,
                conversation_id=message.conversation_id,
                role=message.role.value,
                content=message.content,
                created_at=message.created_at,
            )
        )
        await self._session.flush()
        return message

    @handle_db_errors("AgentMessage")
    async def recent_messages(self, conversation_id: str, limit: int) -> list[ConversationMessage]:
        query = (
            select(DBMessage)
            .where(DBMessage.conversation_id == conversation_id, DBMessage.role.in_(_HISTORY_ROLES))
            .order_by(DBMessage.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(query)
        rows = list(result.scalars().all())
        rows.reverse()
        return [self._message_to_domain(row) for row in rows]

    @handle_db_errors("AgentMessage")
    async def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        query = (
            select(DBMessage)
            .where(DBMessage.conversation_id == conversation_id)
            .order_by(DBMessage.created_at.asc())
        )
        result = await self._session.execute(query)
        return [self._message_to_domain(row) for row in result.scalars().all()]

    # === Conversion methods ===

    def _to_domain(self, db_model: DBConversation | None) -> Conversation | None:
        if db_model is None:
            return None
        return Conversation(
            id=db_model.id,
            workspace_id=db_model.workspace_id,
            user_id=db_model.user_id,
            agent_id=db_model.agent_id,
            title=db_model.title,
            total_input_tokens=db_model.total_input_tokens or 0,
            total_output_tokens=db_model.total_output_tokens or 0,
            total_cost_usd=db_model.total_cost_usd or 0.0,
            created_at=db_model.created_at,
            updated_at=db_model.updated_at or db_model.created_at,
        )

    def _to_db(self, domain_entity: Conversation) -> DBConversation:
        return DBConversation(
            id=domain_entity.id,
            workspace_id=domain_entity.workspace_id,
            user_id=domain_entity.user_id,
            agent_id=domain_entity.agent_id,
            title=domain_entity.title,
            total_input_tokens=domain_entity.total_input_tokens,
            total_output_tokens=domain_entity.total_output_tokens,
            total_cost_usd=domain_entity.total_cost_usd,
            created_at=domain_entity.created_at,
            updated_at=domain_entity.updated_at,
        )

    @staticmethod
    def _message_to_domain(db_model: DBMessage) -> ConversationMessage:
        return ConversationMessage(
            id=db_model.id,
            conversation_id=db_model.conversation_id,
            role=MessageRole(db_model.role),
            content=db_model.content,
            created_at=db_model.created_at,
        )
