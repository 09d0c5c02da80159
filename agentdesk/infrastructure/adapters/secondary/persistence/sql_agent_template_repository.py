"""
Reads agent and team templates (the admin side) into snapshot objects.

A deployed team snapshot is built from these rows once per deploy/refresh; a
single agent is loaded directly for legacy chat and scheduled runs.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedMind,
    DeployedRule,
    DeployedSkill,
    DeployedTeamConfig,
    DeployedTool,
    TeamInfo,
    slugify,
)
from agentdesk.infrastructure.adapters.secondary.common.base_repository import handle_db_errors
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentMind,
    AgentRule,
    AgentSkill,
    AgentTool,
    AIAgent,
    AIAgentSkill,
    AIAgentTool,
    Team,
    TeamAgent,
    TeamDelegation,
    TeamMind,
)

logger = logging.getLogger(__name__)


def _mind_to_snapshot(row: AgentMind) -> DeployedMind:
    return DeployedMind(
        id=row.id,
        name=row.name,
        slug=row.slug,
        content=row.content or "",
        category=row.category or "general",
    )


class SqlAgentTemplateRepository:
    def __init__(self, session: AsyncSession) -> None:
        if session is None:
            raise ValueError("Session cannot be None")
        self._session = session

    @handle_db_errors("AIAgent")
    async def load_agent(self, agent_id: str, enabled_only: bool = True) -> DeployedAgent | None:
        """One template agent with its enabled tools, skills, mind and rules."""
        query = select(AIAgent).where(AIAgent.id == agent_id)
        if enabled_only:
            query = query.where(AIAgent.is_enabled.is_(True))
        agent = (await self._session.execute(query)).scalar_one_or_none()
        if agent is None:
            return None
        return await self._build_agent(agent)

    @handle_db_errors("Team")
    async def get_team_version(self, team_id: str) -> int | None:
        team = await self._session.get(Team, team_id)
        if team is None:
            return None
        return team.current_version or 1

    @handle_db_errors("Team")
    async def load_team_config(self, team_id: str) -> tuple[DeployedTeamConfig, int] | None:
        """Snapshot of a team and its template version, or ``None`` when the team is missing."""
        team = await self._session.get(Team, team_id)
        if team is None:
            return None

        rows = await self._session.execute(
            select(AIAgent)
            .join(TeamAgent, TeamAgent.agent_id == AIAgent.id)
            .where(TeamAgent.team_id == team_id)
            .order_by(TeamAgent.display_order)
        )
        agents = [await self._build_agent(agent) for agent in rows.scalars().all()]
        slug_by_id = {agent.id: agent.slug for agent in agents}

        delegation_rows = await self._session.execute(
            select(TeamDelegation).where(TeamDelegation.team_id == team_id)
        )
        delegations = [
            DeployedDelegation(
                id=row.id,
                from_agent_slug=slug_by_id[row.from_agent_id],
                to_agent_slug=slug_by_id[row.to_agent_id],
                condition=row.condition,
                context_template=row.context_template,
                is_enabled=row.is_enabled if row.is_enabled is not None else True,
            )
            for row in delegation_rows.scalars().all()
            if row.from_agent_id in slug_by_id and row.to_agent_id in slug_by_id
        ]

        mind_rows = await self._session.execute(
            select(AgentMind)
            .join(TeamMind, TeamMind.mind_id == AgentMind.id)
            .where(TeamMind.team_id == team_id, AgentMind.is_enabled.is_(True))
        )
        team_mind = [_mind_to_snapshot(row) for row in mind_rows.scalars().all()]

        config = DeployedTeamConfig(
            team=TeamInfo(
                id=team.id,
                name=team.name,
                slug=team.slug,
                head_agent_id=team.head_agent_id,
            ),
            agents=agents,
            delegations=delegations,
            team_mind=team_mind,
        )
        return config, team.current_version or 1

    async def _build_agent(self, agent: AIAgent) -> DeployedAgent:
        tool_rows = await self._session.execute(
            select(AgentTool)
            .join(AIAgentTool, AIAgentTool.tool_id == AgentTool.id)
            .where(AIAgentTool.agent_id == agent.id, AgentTool.is_enabled.is_(True))
        )
        skill_rows = await self._session.execute(
            select(AgentSkill)
            .join(AIAgentSkill, AIAgentSkill.skill_id == AgentSkill.id)
            .where(AIAgentSkill.agent_id == agent.id, AgentSkill.is_enabled.is_(True))
        )
        mind_rows = await self._session.execute(
            select(AgentMind).where(AgentMind.agent_id == agent.id, AgentMind.is_enabled.is_(True))
        )
        rule_rows = await self._session.execute(
            select(AgentRule)
            .where(AgentRule.agent_id == agent.id, AgentRule.is_enabled.is_(True))
            .order_by(AgentRule.priority)
        )

        return DeployedAgent(
            id=agent.id,
            slug=agent.slug or slugify(agent.name),
            name=agent.name,
            description=agent.description,
            avatar_url=agent.avatar_url,
            system_prompt=agent.system_prompt,
            model=agent.model or "sonnet",
            provider=agent.provider or "anthropic",
            is_enabled=True,
            tools=[
                DeployedTool(
                    id=tool.id,
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=tool.input_schema or {},
                )
                for tool in tool_rows.scalars().all()
            ],
            skills=[
                DeployedSkill(
                    id=skill.id,
                    name=skill.name,
                    slug=slugify(skill.name),
                    content=skill.skill_content or "",
                )
                for skill in skill_rows.scalars().all()
            ],
            mind=[_mind_to_snapshot(row) for row in mind_rows.scalars().all()],
            rules=[
                DeployedRule(
                    id=rule.id,
                    rule_type=rule.rule_type,
                    content=rule.rule_content,
                    priority=rule.priority or 0,
                    condition=rule.condition,
                )
                for rule in rule_rows.scalars().all()
            ],
        )
