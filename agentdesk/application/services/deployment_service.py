"""
DeploymentService: deploy team templates into workspaces.

Deployments use staged activation. A new deployment is stored ``paused``,
its agent resources are provisioned, and only then is it switched to
``active`` while the previous deployment becomes ``replaced``. A workspace
therefore never exposes a partially provisioned team.
"""

import asyncio
import json
import logging
from typing import Any

from agentdesk.application.services.provisioning_service import ProvisioningService
from agentdesk.domain.exceptions import (
    DeploymentError,
    NoActiveDeploymentError,
    RepositoryError,
    TeamNotFoundError,
)
from agentdesk.domain.model.team.customizations import Customizations
from agentdesk.domain.model.team.deployment import (
    BatchResult,
    DeploymentOutcome,
    DeploymentStatus,
    ProvisionSummary,
    WorkspaceDeployment,
)
from agentdesk.domain.model.team.team_config import DeployedTeamConfig
from agentdesk.domain.ports.repositories import DeploymentRepository
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)

logger = logging.getLogger(__name__)

PROVISIONING_INCOMPLETE = "provisioning_incomplete"
INSERT_RETRY_DELAY_SECONDS = 0.5


def provisioning_incomplete_error(summary: ProvisionSummary) -> str:
    details = {
        "issues": summary.issues,
        "expectedAgents": summary.expected_agents,
        "profiles": summary.profiles,
        "channels": summary.channels,
        "schedules": summary.schedules,
        "templates": summary.templates,
    }
    return f"{PROVISIONING_INCOMPLETE}:{json.dumps(details)}"


class DeploymentService:
    """Service for the workspace team deployment lifecycle"""

    def __init__(
        self,
        deployment_repo: DeploymentRepository,
        template_repo: SqlAgentTemplateRepository,
        schedule_repo: SqlScheduleRepository,
        provisioning: ProvisioningService,
    ):
        self._deployment_repo = deployment_repo
        self._template_repo = template_repo
        self._schedule_repo = schedule_repo
        self._provisioning = provisioning

    # === Snapshots ===

    async def build_config_snapshot(self, team_id: str) -> tuple[DeployedTeamConfig, int]:
        """
        Snapshot a team template.

        Returns:
            The config and the team's current template version

        Raises:
            TeamNotFoundError: If the team doesn't exist
        """
        loaded = await self._template_repo.load_team_config(team_id)
        if loaded is None:
            raise TeamNotFoundError(team_id)
        config, version = loaded
        logger.info(
            f"Built snapshot of team {team_id} v{version}: {len(config.agents)} agents, "
            f"{len(config.delegations)} delegations, {len(config.team_mind)} team mind"
        )
        return config, version

    # === Deploy ===

    async def deploy_team(
        self,
        team_id: str,
        workspace_id: str,
        deployed_by: str | None,
        snapshot: tuple[DeployedTeamConfig, int] | None = None,
        customizations: Customizations | None = None,
    ) -> DeploymentOutcome:
        """
        Deploy a team to one workspace with staged activation.

        Args:
            team_id: Source team template
            workspace_id: Target workspace
            deployed_by: User the deployment is attributed to
            snapshot: Prebuilt (config, version); built from the team when omitted
            customizations: Customizations carried over (upgrades); empty by default

        Returns:
            Outcome describing whether the new deployment became active
        """
        base_config, version = snapshot or await self.build_config_snapshot(team_id)
        previous = await self._deployment_repo.find_active(workspace_id)

        deployment = WorkspaceDeployment(
            workspace_id=workspace_id,
            source_team_id=team_id,
            source_version=version,
            status=DeploymentStatus.PAUSED,
            base_config=base_config,
            customizations=customizations or Customizations(),
            previous_deployment_id=previous.id if previous else None,
            deployed_by=deployed_by,
        )

        try:
            await self._insert_staged(deployment)
        except RepositoryError as e:
            logger.error(f"Deployment insert failed for workspace {workspace_id}: {e}")
            return DeploymentOutcome(deployed=False, team_id=team_id, error=str(e))

        summary = await self._provisioning.provision(
            workspace_id,
            deployment.active_config,
            created_by=deployed_by,
            deployment_id=deployment.id,
        )
        if not summary.is_complete:
            error = provisioning_incomplete_error(summary)
            await self._deployment_repo.rollback()
            await self._deployment_repo.update_status(
                deployment.id, DeploymentStatus.FAILED, error_message=error
            )
            await self._deployment_repo.commit()
            logger.warning(f"Deployment {deployment.id} left failed: {error}")
            return DeploymentOutcome(
                deployed=False,
                team_id=team_id,
                deployment_id=deployment.id,
                error=error,
                error_code=PROVISIONING_INCOMPLETE,
                provisioning=summary,
            )

        try:
            if previous is not None:
                await self._deployment_repo.update_status(previous.id, DeploymentStatus.REPLACED)
                await self._disable_replaced_schedules(workspace_id, previous, deployment)
            await self._deployment_repo.update_status(deployment.id, DeploymentStatus.ACTIVE)
            await self._deployment_repo.commit()
        except RepositoryError as e:
            logger.error(f"Deployment activation failed for workspace {workspace_id}: {e}")
            await self._deployment_repo.rollback()
            if previous is not None:
                await self._deployment_repo.update_status(previous.id, DeploymentStatus.ACTIVE)
            await self._deployment_repo.update_status(
                deployment.id, DeploymentStatus.FAILED, error_message=str(e)
            )
            await self._deployment_repo.commit()
            return DeploymentOutcome(
                deployed=False,
                team_id=team_id,
                deployment_id=deployment.id,
                error=f"Failed to activate deployment: {e}",
                provisioning=summary,
            )

        logger.info(f"Deployed team {team_id} to workspace {workspace_id} ({deployment.id})")
        return DeploymentOutcome(
            deployed=True,
            team_id=team_id,
            deployment_id=deployment.id,
            provisioning=summary,
        )

    async def _insert_staged(self, deployment: WorkspaceDeployment) -> None:
        """Store the paused deployment, retrying once on failure."""
        for attempt in range(2):
            try:
                await self._deployment_repo.save(deployment)
                await self._deployment_repo.commit()
                return
            except RepositoryError as e:
                await self._deployment_repo.rollback()
                if attempt == 1:
                    raise
                logger.warning(f"Deployment insert failed (attempt {attempt + 1}), retrying: {e}")
                await asyncio.sleep(INSERT_RETRY_DELAY_SECONDS)

    async def _disable_replaced_schedules(
        self,
        workspace_id: str,
        previous: WorkspaceDeployment,
        current: WorkspaceDeployment,
    ) -> None:
        """Disable every schedule of the previous deployment's agents except the new copies."""
        previous_agents = [agent.id for agent in previous.active_config.agents]
        disabled = await self._schedule_repo.disable_for_agents(
            workspace_id, previous_agents, keep_deployment_id=current.id
        )
        if disabled:
            logger.info(f"Disabled {disabled} schedules of deployment {previous.id} in {workspace_id}")

    async def deploy_team_to_workspaces(
        self, team_id: str, workspace_ids: list[str], deployed_by: str | None
    ) -> BatchResult:
        """Deploy to several workspaces, building the snapshot once."""
        snapshot = await self.build_config_snapshot(team_id)
        result = BatchResult()
        for workspace_id in workspace_ids:
            outcome = await self.deploy_team(team_id, workspace_id, deployed_by, snapshot=snapshot)
            if outcome.deployed:
                result.succeeded.append(workspace_id)
            else:
                result.failed.append(
                    {"workspace_id": workspace_id, "error": outcome.error or "Unknown error"}
                )
        return result

    # === Lifecycle ===

    async def get_active_deployment(self, workspace_id: str) -> WorkspaceDeployment | None:
        return await self._deployment_repo.find_active(workspace_id)

    async def _require_active(self, workspace_id: str) -> WorkspaceDeployment:
        deployment = await self._deployment_repo.find_active(workspace_id)
        if deployment is None:
            raise NoActiveDeploymentError(workspace_id)
        return deployment

    async def list_deployments(self, workspace_id: str) -> list[WorkspaceDeployment]:
        return await self._deployment_repo.list_by_workspace(workspace_id)

    async def rollback_deployment(self, workspace_id: str, user_id: str) -> WorkspaceDeployment:
        """
        Reactivate the deployment the current one replaced.

        Raises:
            NoActiveDeploymentError: If the workspace has no active deployment
            DeploymentError: If there is nothing to roll back to
        """
        current = await self._require_active(workspace_id)
        if not current.previous_deployment_id:
            raise DeploymentError("No previous deployment to roll back to", code="no_previous")

        previous = await self._deployment_repo.find_by_id(current.previous_deployment_id)
        if previous is None:
            raise DeploymentError("Previous deployment no longer exists", code="no_previous")

        await self._deployment_repo.update_status(current.id, DeploymentStatus.REPLACED)
        await self._deployment_repo.update_status(previous.id, DeploymentStatus.ACTIVE)
        await self._deployment_repo.commit()
        previous.status = DeploymentStatus.ACTIVE
        logger.info(
            f"User {user_id} rolled back workspace {workspace_id} "
            f"from {current.id} to {previous.id}"
        )
        return previous

    async def update_customizations(
        self, workspace_id: str, update: dict[str, Any], user_id: str
    ) -> WorkspaceDeployment:
        """Merge a partial customization update and recompute the active config."""
        deployment = await self._require_active(workspace_id)
        deployment.customize(deployment.customizations.merged_with(update), user_id)
        await self._deployment_repo.save(deployment)
        await self._deployment_repo.commit()
        logger.info(f"Updated customizations of deployment {deployment.id}")
        return deployment

    async def reset_customizations(self, workspace_id: str, user_id: str) -> WorkspaceDeployment:
        deployment = await self._require_active(workspace_id)
        deployment.customize(Customizations(), user_id)
        await self._deployment_repo.save(deployment)
        await self._deployment_repo.commit()
        logger.info(f"Reset customizations of deployment {deployment.id}")
        return deployment

    async def toggle_agent_enabled(
        self, workspace_id: str, agent_slug: str, enabled: bool, user_id: str | None
    ) -> ProvisionSummary | None:
        """
        Enable or disable one deployed agent.

        Enabling re-provisions the workspace so the agent has its resources.

        Returns:
            The provisioning summary when enabling, otherwise None

        Raises:
            DeploymentError: If re-provisioning is incomplete
        """
        deployment = await self._require_active(workspace_id)
        disabled = [slug for slug in deployment.customizations.disabled_agents if slug != agent_slug]
        if not enabled:
            disabled.append(agent_slug)

        deployment.customize(
            deployment.customizations.merged_with({"disabled_agents": disabled}), user_id
        )
        await self._deployment_repo.save(deployment)
        await self._deployment_repo.commit()
        logger.info(f"Agent {agent_slug} {'enabled' if enabled else 'disabled'} in {workspace_id}")

        if not enabled:
            return None

        summary = await self._provisioning.provision(
            workspace_id,
            deployment.active_config,
            created_by=user_id,
            deployment_id=deployment.id,
        )
        if not summary.is_complete:
            await self._deployment_repo.rollback()
            raise DeploymentError(
                provisioning_incomplete_error(summary), code=PROVISIONING_INCOMPLETE
            )
        await self._deployment_repo.commit()
        return summary

    async def upgrade_deployment(self, workspace_id: str, user_id: str) -> DeploymentOutcome:
        """
        Move the workspace to the team's latest template version.

        Customizations are preserved. Already being at the latest version is
        a no-op that reports the current deployment.
        """
        deployment = await self._require_active(workspace_id)
        latest = await self._template_repo.get_team_version(deployment.source_team_id)
        if latest is None:
            raise TeamNotFoundError(deployment.source_team_id)

        if deployment.source_version == latest:
            logger.info(f"Deployment {deployment.id} already at version {latest}")
            return DeploymentOutcome(
                deployed=True, team_id=deployment.source_team_id, deployment_id=deployment.id
            )

        return await self.deploy_team(
            deployment.source_team_id,
            workspace_id,
            user_id,
            customizations=deployment.customizations,
        )

    async def undeploy(self, workspace_id: str) -> None:
        deployment = await self._require_active(workspace_id)
        await self._deployment_repo.update_status(deployment.id, DeploymentStatus.PAUSED)
        await self._deployment_repo.commit()
        logger.info(f"Undeployed team from workspace {workspace_id}")

    async def refresh_all_deployments(self, user_id: str | None) -> BatchResult:
        """
        Rebuild every active deployment from its source team.

        The snapshot is built once per team; customizations are re-applied.
        Failures are collected per deployment.
        """
        deployments = await self._deployment_repo.list_active()
        by_team: dict[str, list[WorkspaceDeployment]] = {}
        for deployment in deployments:
            by_team.setdefault(deployment.source_team_id, []).append(deployment)

        result = BatchResult()
        for team_id, team_deployments in by_team.items():
            try:
                base_config, _version = await self.build_config_snapshot(team_id)
            except (TeamNotFoundError, RepositoryError) as e:
                for deployment in team_deployments:
                    result.failed.append(
                        {
                            "deployment_id": deployment.id,
                            "error": f"Failed to build config for team {team_id}: {e}",
                        }
                    )
                continue

            for deployment in team_deployments:
                try:
                    deployment.base_config = base_config
                    deployment.customize(deployment.customizations, user_id)
                    await self._deployment_repo.save(deployment)
                    await self._deployment_repo.commit()
                    result.succeeded.append(deployment.id)
                except RepositoryError as e:
                    await self._deployment_repo.rollback()
                    result.failed.append({"deployment_id": deployment.id, "error": str(e)})

        logger.info(
            f"Refreshed {len(result.succeeded)} deployments, {len(result.failed)} failed"
        )
        return result

    # === Agent resources ===

    async def get_workspace_agent_resources(self, workspace_id: str):
        return await self._provisioning.get_resources(workspace_id)

    async def cleanup_agent_resources(self, workspace_id: str) -> int:
        removed = await self._provisioning.cleanup(workspace_id)
        await self._deployment_repo.commit()
        return removed
