"""
Agent profiles, workspace memberships, agent channels and the replies
agents post in them.

Every ``ensure_*`` method is idempotent: it returns the existing row's id
when one already matches, so provisioning can be re-run safely.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.domain.model.team.deployment import DeploymentAgentResources
from agentdesk.domain.model.team.team_config import DeployedAgent
from agentdesk.infrastructure.adapters.secondary.common.base_repository import handle_db_errors
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Channel,
    ChannelMember,
    Message,
    Profile,
    WorkspaceMember,
)

logger = logging.getLogger(__name__)


def agent_email(agent_slug: str, workspace_id: str) -> str:
    return f"{agent_slug}@agent.workspace-{workspace_id[:8]}.local"


def agent_channel_name(agent_slug: str) -> str:
    return f"agent-{agent_slug}"


class SqlAgentResourceRepository:
    def __init__(self, session: AsyncSession) -> None:
        if session is None:
            raise ValueError("Session cannot be None")
        self._session = session

    @handle_db_errors("Profile")
    async def ensure_agent_profile(self, workspace_id: str, agent: DeployedAgent) -> str:
        existing = await self._session.execute(
            select(Profile.id).where(
                Profile.linked_agent_id == agent.id,
                Profile.agent_workspace_id == workspace_id,
            )
        )
        profile_id = existing.scalar_one_or_none()
        if profile_id:
            return profile_id

        profile = Profile(
            email=agent_email(agent.slug, workspace_id),
            full_name=agent.name,
            avatar_url=agent.avatar_url,
            is_agent=True,
            agent_slug=agent.slug,
            linked_agent_id=agent.id,
            agent_workspace_id=workspace_id,
        )
        self._session.add(profile)
        await self._session.flush()
        return profile.id

    @handle_db_errors("WorkspaceMember")
    async def ensure_workspace_member(
        self, workspace_id: str, profile_id: str, role: str = "member"
    ) -> str:
        existing = await self._session.execute(
            select(WorkspaceMember.id).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.profile_id == profile_id,
            )
        )
        member_id = existing.scalar_one_or_none()
        if member_id:
            return member_id

        member = WorkspaceMember(workspace_id=workspace_id, profile_id=profile_id, role=role)
        self._session.add(member)
        await self._session.flush()
        return member.id

    @handle_db_errors("Channel")
    async def ensure_agent_channel(
        self, workspace_id: str, agent: DeployedAgent, creator_profile_id: str | None
    ) -> str:
        name = agent_channel_name(agent.slug)
        existing = await self._session.execute(
            select(Channel.id).where(Channel.workspace_id == workspace_id, Channel.name == name)
        )
        channel_id = existing.scalar_one_or_none()
        if channel_id:
            return channel_id

        channel = Channel(
            workspace_id=workspace_id,
            name=name,
            description=f"Communication channel for {agent.name}",
            is_agent_channel=True,
            linked_agent_id=agent.id,
            created_by=creator_profile_id,
        )
        self._session.add(channel)
        await self._session.flush()
        return channel.id

    @handle_db_errors("ChannelMember")
    async def ensure_channel_member(self, channel_id: str, profile_id: str) -> None:
        existing = await self._session.execute(
            select(ChannelMember.id).where(
                ChannelMember.channel_id == channel_id,
                ChannelMember.profile_id == profile_id,
            )
        )
        if existing.scalar_one_or_none():
            return
        self._session.add(ChannelMember(channel_id=channel_id, profile_id=profile_id))
        await self._session.flush()

    @handle_db_errors("Profile")
    async def profile_exists(self, profile_id: str) -> bool:
        result = await self._session.execute(select(Profile.id).where(Profile.id == profile_id))
        return result.scalar_one_or_none() is not None

    @handle_db_errors("Channel")
    async def find_channel(self, channel_id: str) -> Channel | None:
        result = await self._session.execute(select(Channel).where(Channel.id == channel_id))
        return result.scalar_one_or_none()

    @handle_db_errors("Profile")
    async def find_agent_profile_id(self, workspace_id: str, agent_id: str) -> str | None:
        result = await self._session.execute(
            select(Profile.id).where(
                Profile.linked_agent_id == agent_id,
                Profile.agent_workspace_id == workspace_id,
            )
        )
        return result.scalar_one_or_none()

    @handle_db_errors("Message")
    async def post_agent_reply(
        self, channel: Channel, sender_id: str, content: str, agent_request_id: str
    ) -> Message:
        """Reply to an agent channel request, correlated by ``agent_request_id``."""
        message = Message(
            workspace_id=channel.workspace_id,
            channel_id=channel.id,
            sender_id=sender_id,
            content=content,
            is_agent_request=False,
            agent_request_id=agent_request_id,
            agent_response_status="completed",
        )
        self._session.add(message)
        await self._session.flush()
        return message

    @handle_db_errors("Profile")
    async def list_agent_profiles(self, workspace_id: str) -> list[Profile]:
        result = await self._session.execute(
            select(Profile).where(
                Profile.agent_workspace_id == workspace_id, Profile.is_agent.is_(True)
            )
        )
        return list(result.scalars().all())

    @handle_db_errors("Channel")
    async def list_agent_channels(self, workspace_id: str) -> list[Channel]:
        result = await self._session.execute(
            select(Channel).where(
                Channel.workspace_id == workspace_id, Channel.is_agent_channel.is_(True)
            )
        )
        return list(result.scalars().all())

    async def get_resources(self, workspace_id: str) -> list[DeploymentAgentResources]:
        profiles = await self.list_agent_profiles(workspace_id)
        channel_by_agent = {
            channel.linked_agent_id: channel.id
            for channel in await self.list_agent_channels(workspace_id)
            if channel.linked_agent_id
        }
        return [
            DeploymentAgentResources(
                profile_id=profile.id,
                channel_id=channel_by_agent.get(profile.linked_agent_id),
                agent_slug=profile.agent_slug or "",
                agent_name=profile.full_name or "",
            )
            for profile in profiles
        ]

    @handle_db_errors("Profile")
    async def delete_agent_resources(self, workspace_id: str) -> int:
        """Remove agent channels, their memberships and the agent profiles. Returns profiles removed."""
        profile_ids = [p.id for p in await self.list_agent_profiles(workspace_id)]
        if not profile_ids:
            return 0

        channel_ids = [c.id for c in await self.list_agent_channels(workspace_id)]
        if channel_ids:
            await self._session.execute(
                delete(ChannelMember).where(ChannelMember.channel_id.in_(channel_ids))
            )
        await self._session.execute(
            delete(ChannelMember).where(ChannelMember.profile_id.in_(profile_ids))
        )
        await self._session.execute(
            delete(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.profile_id.in_(profile_ids),
            )
        )
        if channel_ids:
            await self._session.execute(delete(Channel).where(Channel.id.in_(channel_ids)))
        await self._session.execute(delete(Profile).where(Profile.id.in_(profile_ids)))
        await self._session.flush()
        return len(profile_ids)
