"""
ConfigResolver: decides which agent answers a chat request.

Team mode is used when the workspace has an active deployment; otherwise
the request must name a workspace agent (legacy single-agent mode).
"""

import logging

from agentdesk.application.services.prompt_builder import (
    DEFAULT_SYSTEM_PROMPT,
    append_skills,
    apply_rules_to_prompt,
    build_agent_prompt,
    build_delegation_section,
)
from agentdesk.domain.exceptions import (
    AgentNotFoundError,
    NoAgentConfiguredError,
    NoHeadAgentError,
)
from agentdesk.domain.model.agent.resolved_config import ResolvedAgentConfig
from agentdesk.domain.model.team.team_config import DeployedAgent, DeployedTeamConfig
from agentdesk.domain.ports.repositories import DeploymentRepository
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

logger = logging.getLogger(__name__)


class ConfigResolver:
    def __init__(
        self,
        deployment_repo: DeploymentRepository,
        workspace_repo: SqlWorkspaceRepository,
        template_repo: SqlAgentTemplateRepository,
        default_provider: str = "anthropic",
        default_model: str = "sonnet",
    ):
        self._deployment_repo = deployment_repo
        self._workspace_repo = workspace_repo
        self._template_repo = template_repo
        self._default_provider = default_provider
        self._default_model = default_model

    async def resolve(self, workspace_id: str, agent_id: str | None) -> ResolvedAgentConfig:
        """
        Resolve the agent configuration for a chat request.

        Args:
            workspace_id: Workspace the chat belongs to
            agent_id: Requested agent; a template agent id or a workspace agent id

        Returns:
            The resolved agent with its base prompt and tool names

        Raises:
            NoHeadAgentError: Team deployed but no enabled agent to fall back to
            AgentNotFoundError: Legacy agent missing or inactive
            NoAgentConfiguredError: No deployment and no agent requested
        """
        deployment = await self._deployment_repo.find_active(workspace_id)
        if deployment is not None:
            logger.info(f"Team mode: {deployment.active_config.team.name}")
            return await self._resolve_team_agent(
                deployment.active_config, workspace_id, agent_id
            )

        if agent_id:
            logger.info(f"Single agent mode: {agent_id}")
            return await self._resolve_legacy_agent(workspace_id, agent_id)

        logger.info("No agent or team configured")
        raise NoAgentConfiguredError()

    async def _resolve_team_agent(
        self, config: DeployedTeamConfig, workspace_id: str, agent_id: str | None
    ) -> ResolvedAgentConfig:
        target: DeployedAgent | None = None
        if agent_id:
            target = config.get_agent_by_id(agent_id)
            if target is None:
                # The id may belong to the workspace ``agents`` table
                workspace_agent = await self._workspace_repo.find_agent(agent_id, workspace_id)
                if workspace_agent and workspace_agent.ai_agent_id:
                    target = config.get_agent_by_id(workspace_agent.ai_agent_id)
            if target is None:
                logger.info(
                    f"Requested agent {agent_id} not found or disabled, falling back to head agent"
                )

        if target is None:
            target = config.get_head_agent()
            if target is None:
                raise NoHeadAgentError()

        delegations = config.delegations_from(target.slug)
        system_prompt = build_agent_prompt(target, config.team_mind)
        if delegations:
            system_prompt += "\n\n---\n\n" + build_delegation_section(delegations, config)

        logger.info(f"Using agent: {target.name} ({target.slug}) with {len(target.tools)} tools")
        return ResolvedAgentConfig(
            agent_id=target.id,
            agent_name=target.name,
            agent_slug=target.slug,
            provider=target.provider,
            model=target.model,
            system_prompt=system_prompt,
            tool_names=target.tool_names,
            delegation_targets=delegations,
            team_config=config,
            agent=target,
        )

    async def _resolve_legacy_agent(
        self, workspace_id: str, agent_id: str
    ) -> ResolvedAgentConfig:
        record = await self._workspace_repo.find_active_agent(agent_id, workspace_id)
        if record is None:
            raise AgentNotFoundError(agent_id)

        system_prompt = record.system_prompt or DEFAULT_SYSTEM_PROMPT
        provider, model = self._default_provider, self._default_model
        linked: DeployedAgent | None = None

        if record.ai_agent_id:
            linked = await self._template_repo.load_agent(record.ai_agent_id, enabled_only=False)

        if linked is not None:
            system_prompt = apply_rules_to_prompt(system_prompt, linked.rules)
            system_prompt = append_skills(
                system_prompt, [(s.name, s.content) for s in linked.skills]
            )
            tool_names = linked.tool_names
            provider, model = linked.provider, linked.model
        else:
            local_skills = await self._workspace_repo.list_assigned_skills(record.id)
            system_prompt = append_skills(
                system_prompt, [(s.name, s.content) for s in local_skills]
            )
            tool_names = list(record.tools)

        logger.info(f"Single agent {record.name} has {len(tool_names)} tools assigned")
        return ResolvedAgentConfig(
            agent_id=record.id,
            agent_name=record.name,
            agent_slug=linked.slug if linked else None,
            provider=provider,
            model=model,
            system_prompt=system_prompt,
            tool_names=tool_names,
            agent=linked,
        )
