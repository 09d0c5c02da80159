"""Repository interfaces used by application services."""

from abc import ABC, abstractmethod
from datetime import datetime

from agentdesk.domain.model.agent.conversation import Conversation, ConversationMessage
from agentdesk.domain.model.auth.api_key import APIKey
from agentdesk.domain.model.team.deployment import DeploymentStatus, WorkspaceDeployment


class ConversationRepository(ABC):
    """Repository interface for agent conversations and their messages"""

    @abstractmethod
    async def save(self, conversation: Conversation) -> Conversation:
        """Save a conversation (create or update)"""

    @abstractmethod
    async def find_by_id(self, conversation_id: str) -> Conversation | None:
        """Find a conversation by ID"""

    @abstractmethod
    async def list_for_user(
        self, workspace_id: str, user_id: str, limit: int = 50, offset: int = 0
    ) -> list[Conversation]:
        """List a user's conversations in a workspace, newest first"""

    @abstractmethod
    async def delete(self, conversation_id: str) -> bool:
        """Delete a conversation and its messages"""

    @abstractmethod
    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        """Append a message"""

    @abstractmethod
    async def recent_messages(self, conversation_id: str, limit: int) -> list[ConversationMessage]:
        """Last ``limit`` user/assistant messages in chronological order"""

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[ConversationMessage]:
        """All messages in chronological order"""


class DeploymentRepository(ABC):
    """Repository interface for workspace team deployments"""

    @abstractmethod
    async def save(self, deployment: WorkspaceDeployment) -> WorkspaceDeployment:
        """Save a deployment (create or update)"""

    @abstractmethod
    async def find_by_id(self, deployment_id: str) -> WorkspaceDeployment | None:
        """Find a deployment by ID"""

    @abstractmethod
    async def find_active(self, workspace_id: str) -> WorkspaceDeployment | None:
        """The workspace's active deployment, if any"""

    @abstractmethod
    async def list_active(self) -> list[WorkspaceDeployment]:
        """All active deployments across workspaces"""

    @abstractmethod
    async def list_by_workspace(self, workspace_id: str) -> list[WorkspaceDeployment]:
        """Deployment history of a workspace, newest first"""

    @abstractmethod
    async def update_status(
        self, deployment_id: str, status: DeploymentStatus, error_message: str | None = None
    ) -> None:
        """Set the lifecycle status of a deployment"""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the unit of work"""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard uncommitted changes"""


class APIKeyRepository(ABC):
    """Repository interface for APIKey entity"""

    @abstractmethod
    async def save(self, api_key: APIKey) -> APIKey:
        """Save an API key (create or update)"""

    @abstractmethod
    async def find_by_hash(self, key_hash: str) -> APIKey | None:
        """Find an API key by its hash"""

    @abstractmethod
    async def update_last_used(self, key_id: str, timestamp: datetime) -> None:
        """Update the last_used_at timestamp"""
