"""
ProvisioningService: per-agent workspace resources for a deployed team.

Every enabled agent gets an agent profile, a workspace membership, a
workspace ``agents`` row linked to its template, and an ``agent-<slug>``
channel that all agent profiles (and the channel creator) belong to.
Template schedules of the enabled agents are copied into the workspace,
one copy per deployment. All steps are idempotent, so provisioning can be
re-run at any time.
"""

import logging

from agentdesk.domain.exceptions import RepositoryError
from agentdesk.domain.model.team.deployment import DeploymentAgentResources, ProvisionSummary
from agentdesk.domain.model.team.team_config import DeployedAgent, DeployedTeamConfig
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_resource_repository import (
    SqlAgentResourceRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

logger = logging.getLogger(__name__)


class ProvisioningService:
    """Service for provisioning and cleaning up deployed agent resources"""

    def __init__(
        self,
        resource_repo: SqlAgentResourceRepository,
        workspace_repo: SqlWorkspaceRepository,
        schedule_repo: SqlScheduleRepository,
    ):
        self._resource_repo = resource_repo
        self._workspace_repo = workspace_repo
        self._schedule_repo = schedule_repo

    async def provision(
        self,
        workspace_id: str,
        config: DeployedTeamConfig,
        created_by: str | None = None,
        deployment_id: str | None = None,
    ) -> ProvisionSummary:
        """
        Provision resources for every enabled agent of ``config``.

        Args:
            workspace_id: Target workspace
            config: The active team config
            created_by: User the deployment is attributed to; the workspace
                owner is used as channel creator when set
            deployment_id: Deployment the copied schedules belong to

        Returns:
            Summary with counts and any issues; database errors are recorded
            as issues rather than raised
        """
        agents = [agent for agent in config.agents if agent.is_enabled]
        summary = ProvisionSummary(expected_agents=len(agents))

        try:
            creator_id = await self._resolve_channel_creator(workspace_id, created_by)
            profile_ids = await self._provision_profiles(workspace_id, agents, created_by, summary)
            await self._provision_channels(workspace_id, agents, profile_ids, creator_id, summary)
            await self._provision_schedules(workspace_id, agents, deployment_id, summary)
        except RepositoryError as e:
            logger.error(f"Provisioning failed for workspace {workspace_id}: {e}")
            summary.issues.append(str(e))

        logger.info(
            f"Provisioned workspace {workspace_id}: {summary.profiles}/{summary.expected_agents} "
            f"profiles, {summary.channels} channels, "
            f"{summary.schedules}/{summary.templates} schedules"
        )
        return summary

    async def _resolve_channel_creator(
        self, workspace_id: str, created_by: str | None
    ) -> str | None:
        for candidate in (await self._workspace_repo.get_owner_id(workspace_id), created_by):
            if candidate and await self._resource_repo.profile_exists(candidate):
                return candidate
        return None

    async def _provision_profiles(
        self,
        workspace_id: str,
        agents: list[DeployedAgent],
        created_by: str | None,
        summary: ProvisionSummary,
    ) -> dict[str, str]:
        profile_ids: dict[str, str] = {}
        for agent in agents:
            profile_id = await self._resource_repo.ensure_agent_profile(workspace_id, agent)
            await self._resource_repo.ensure_workspace_member(workspace_id, profile_id)
            await self._ensure_workspace_agent(workspace_id, agent, created_by)
            profile_ids[agent.slug] = profile_id
            summary.profiles += 1
        return profile_ids

    async def _ensure_workspace_agent(
        self, workspace_id: str, agent: DeployedAgent, created_by: str | None
    ) -> None:
        existing = await self._workspace_repo.find_agent_for_template(workspace_id, agent.id)
        if existing is None:
            await self._workspace_repo.create_agent(
                workspace_id,
                agent.name,
                ai_agent_id=agent.id,
                description=agent.description,
                created_by=created_by,
            )
        else:
            await self._workspace_repo.set_agent_active(existing.id, True)

    async def _provision_channels(
        self,
        workspace_id: str,
        agents: list[DeployedAgent],
        profile_ids: dict[str, str],
        creator_id: str | None,
        summary: ProvisionSummary,
    ) -> None:
        for agent in agents:
            channel_id = await self._resource_repo.ensure_agent_channel(
                workspace_id, agent, creator_id
            )
            for profile_id in profile_ids.values():
                await self._resource_repo.ensure_channel_member(channel_id, profile_id)
            if creator_id:
                await self._resource_repo.ensure_channel_member(channel_id, creator_id)

            summary.channels += 1
            summary.resources.append(
                DeploymentAgentResources(
                    profile_id=profile_ids[agent.slug],
                    channel_id=channel_id,
                    agent_slug=agent.slug,
                    agent_name=agent.name,
                )
            )

    async def _provision_schedules(
        self,
        workspace_id: str,
        agents: list[DeployedAgent],
        deployment_id: str | None,
        summary: ProvisionSummary,
    ) -> None:
        templates = await self._schedule_repo.list_templates([agent.id for agent in agents])
        summary.templates = len(templates)
        for template in templates:
            await self._schedule_repo.ensure_from_template(workspace_id, template, deployment_id)
            summary.schedules += 1
        if summary.schedules < summary.templates:
            summary.issues.append(
                f"Only {summary.schedules} of {summary.templates} template schedules were copied"
            )

    async def cleanup(self, workspace_id: str) -> int:
        """Remove agent profiles, channels and memberships. Returns profiles removed."""
        removed = await self._resource_repo.delete_agent_resources(workspace_id)
        logger.info(f"Removed {removed} agent profiles from workspace {workspace_id}")
        return removed

    async def get_resources(self, workspace_id: str) -> list[DeploymentAgentResources]:
        return await self._resource_repo.get_resources(workspace_id)
