"""
AgentChannelService: answers tasks posted in an agent's channel.

Every deployed agent gets a channel linked to it. When a message flagged
as an agent request lands there, the linked specialist from the active
deployment answers it with its own tools, and the answer is posted back
into the channel under the agent's profile with the same request id.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from agentdesk.application.schemas.chat import ChannelMessageRecord
from agentdesk.application.services.delegation_service import DelegationService
from agentdesk.domain.exceptions import (
    AgentNotFoundError,
    EntityNotFoundError,
    NoActiveDeploymentError,
    SpecialistRunError,
)
from agentdesk.domain.ports.repositories import DeploymentRepository
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_resource_repository import (
    SqlAgentResourceRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class AgentChannelResult:
    skipped: bool = False
    reason: str | None = None
    agent_slug: str | None = None
    response_length: int = 0
    message_id: str | None = None
    usage: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        if self.skipped:
            return {"skipped": True, "reason": self.reason}
        return {
            "success": True,
            "agentSlug": self.agent_slug,
            "responseLength": self.response_length,
            "messageId": self.message_id,
            "usage": self.usage,
        }


class AgentChannelService:
    def __init__(
        self,
        resource_repo: SqlAgentResourceRepository,
        deployment_repo: DeploymentRepository,
        delegation: DelegationService,
    ):
        self._resource_repo = resource_repo
        self._deployment_repo = deployment_repo
        self._delegation = delegation

    async def handle(self, record: ChannelMessageRecord) -> AgentChannelResult:
        """
        Run the channel's specialist on a posted request and post its reply.

        Args:
            record: The message that was inserted into the channel

        Returns:
            What was answered, or why the message was skipped

        Raises:
            EntityNotFoundError: The channel does not exist
            NoActiveDeploymentError: The workspace has no deployed team
            AgentNotFoundError: The linked agent is not enabled in the deployment
            SpecialistRunError: The specialist failed to answer
        """
        if not record.is_agent_request:
            logger.debug(f"Skipping message {record.id}: not an agent request")
            return AgentChannelResult(skipped=True, reason="Not an agent request")

        channel = await self._resource_repo.find_channel(record.channel_id)
        if channel is None:
            raise EntityNotFoundError("Channel", record.channel_id)
        if not channel.is_agent_channel or not channel.linked_agent_id:
            logger.debug(f"Skipping message {record.id}: channel {channel.id} is not an agent channel")
            return AgentChannelResult(skipped=True, reason="Not an agent channel")

        deployment = await self._deployment_repo.find_active(channel.workspace_id)
        if deployment is None:
            raise NoActiveDeploymentError(channel.workspace_id)
        config = deployment.active_config
        specialist = config.get_agent_by_id(channel.linked_agent_id)
        if specialist is None:
            raise AgentNotFoundError(channel.linked_agent_id, "Specialist not found")

        request_id = record.agent_request_id or record.id
        logger.info(f"Agent channel request {request_id}: running {specialist.slug}")
        result = await self._delegation.run_specialist(
            specialist, config, record.content, channel.workspace_id, record.profile_id
        )
        if not result.success:
            raise SpecialistRunError(specialist.slug, result.error or "Unknown error occurred")

        message_id = None
        profile_id = await self._resource_repo.find_agent_profile_id(
            channel.workspace_id, specialist.id
        )
        if profile_id:
            reply = await self._resource_repo.post_agent_reply(
                channel, profile_id, result.response, request_id
            )
            message_id = reply.id
        else:
            logger.warning(f"No profile for agent {specialist.slug} in {channel.workspace_id}, reply not posted")

        return AgentChannelResult(
            agent_slug=specialist.slug,
            response_length=len(result.response),
            message_id=message_id,
            usage=result.usage or {},
        )
