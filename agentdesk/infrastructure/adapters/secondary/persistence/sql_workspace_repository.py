"""Workspace membership, business context and workspace-level agents."""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.infrastructure.adapters.secondary.common.base_repository import handle_db_errors
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Agent,
    AgentSkillAssignment,
    Workspace,
    WorkspaceMember,
    WorkspaceSkill,
)

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceAgentRecord:
    id: str
    workspace_id: str
    name: str
    system_prompt: str | None = None
    tools: list[str] = field(default_factory=list)
    ai_agent_id: str | None = None


@dataclass
class LocalSkill:
    name: str
    content: str


class SqlWorkspaceRepository:
    def __init__(self, session: AsyncSession) -> None:
        if session is None:
            raise ValueError("Session cannot be None")
        self._session = session

    @handle_db_errors("WorkspaceMember")
    async def get_member(self, workspace_id: str, profile_id: str) -> WorkspaceMember | None:
        query = select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.profile_id == profile_id,
        )
        result = await self._session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        return await self.get_member(workspace_id, user_id) is not None

    @handle_db_errors("Workspace")
    async def get_business_context(self, workspace_id: str) -> dict | str | None:
        result = await self._session.execute(
            select(Workspace.business_context).where(Workspace.id == workspace_id)
        )
        return result.scalar_one_or_none()

    @handle_db_errors("Workspace")
    async def get_owner_id(self, workspace_id: str) -> str | None:
        result = await self._session.execute(
            select(Workspace.owner_id).where(Workspace.id == workspace_id)
        )
        return result.scalar_one_or_none()

    @handle_db_errors("Agent")
    async def find_active_agent(self, agent_id: str, workspace_id: str) -> WorkspaceAgentRecord | None:
        result = await self._session.execute(
            select(Agent).where(
                Agent.id == agent_id,
                Agent.workspace_id == workspace_id,
                Agent.is_active.is_(True),
            )
        )
        return self._to_record(result.scalar_one_or_none())

    @handle_db_errors("Agent")
    async def find_agent(self, agent_id: str, workspace_id: str) -> WorkspaceAgentRecord | None:
        result = await self._session.execute(
            select(Agent).where(Agent.id == agent_id, Agent.workspace_id == workspace_id)
        )
        return self._to_record(result.scalar_one_or_none())

    @handle_db_errors("Agent")
    async def find_any_active_agent(self, workspace_id: str) -> WorkspaceAgentRecord | None:
        result = await self._session.execute(
            select(Agent)
            .where(Agent.workspace_id == workspace_id, Agent.is_active.is_(True))
            .order_by(Agent.created_at)
            .limit(1)
        )
        return self._to_record(result.scalar_one_or_none())

    @handle_db_errors("Agent")
    async def find_agent_for_template(
        self, workspace_id: str, ai_agent_id: str
    ) -> WorkspaceAgentRecord | None:
        result = await self._session.execute(
            select(Agent)
            .where(Agent.workspace_id == workspace_id, Agent.ai_agent_id == ai_agent_id)
            .limit(1)
        )
        return self._to_record(result.scalar_one_or_none())

    @handle_db_errors("Agent")
    async def create_agent(
        self,
        workspace_id: str,
        name: str,
        ai_agent_id: str | None = None,
        description: str | None = None,
        created_by: str | None = None,
    ) -> WorkspaceAgentRecord:
        agent = Agent(
            workspace_id=workspace_id,
            name=name,
            description=description,
            ai_agent_id=ai_agent_id,
            tools=[],
            is_active=True,
            created_by=created_by,
        )
        self._session.add(agent)
        await self._session.flush()
        return self._to_record(agent)

    @handle_db_errors("Agent")
    async def set_agent_active(self, agent_id: str, is_active: bool) -> None:
        agent = await self._session.get(Agent, agent_id)
        if agent is not None:
            agent.is_active = is_active
            await self._session.flush()

    @handle_db_errors("Skill")
    async def list_assigned_skills(self, agent_id: str) -> list[LocalSkill]:
        result = await self._session.execute(
            select(WorkspaceSkill)
            .join(AgentSkillAssignment, AgentSkillAssignment.skill_id == WorkspaceSkill.id)
            .where(AgentSkillAssignment.agent_id == agent_id, WorkspaceSkill.is_active.is_(True))
        )
        return [
            LocalSkill(name=skill.display_name or skill.name, content=skill.content or "")
            for skill in result.scalars().all()
        ]

    @staticmethod
    def _to_record(agent: Agent | None) -> WorkspaceAgentRecord | None:
        if agent is None:
            return None
        return WorkspaceAgentRecord(
            id=agent.id,
            workspace_id=agent.workspace_id,
            name=agent.name,
            system_prompt=agent.system_prompt,
            tools=list(agent.tools or []),
            ai_agent_id=agent.ai_agent_id,
        )
