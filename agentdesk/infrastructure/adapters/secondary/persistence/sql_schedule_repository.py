import logging
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.infrastructure.adapters.secondary.common.base_repository import handle_db_errors
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentSchedule,
    AgentScheduleExecution,
)

logger = logging.getLogger(__name__)


def _same_deployment(deployment_id: str | None):
    if deployment_id is None:
        return AgentSchedule.deployment_id.is_(None)
    return AgentSchedule.deployment_id == deployment_id


class SqlScheduleRepository:
    """Agent schedules and their execution records."""

    def __init__(self, session: AsyncSession) -> None:
        if session is None:
            raise ValueError("Session cannot be None")
        self._session = session

    @handle_db_errors("AgentSchedule")
    async def list_templates(self, ai_agent_ids: list[str]) -> list[AgentSchedule]:
        if not ai_agent_ids:
            return []
        result = await self._session.execute(
            select(AgentSchedule).where(
                AgentSchedule.ai_agent_id.in_(ai_agent_ids),
                AgentSchedule.is_template.is_(True),
            )
        )
        return list(result.scalars().all())

    @handle_db_errors("AgentSchedule")
    async def ensure_from_template(
        self, workspace_id: str, template: AgentSchedule, deployment_id: str | None = None
    ) -> str:
        """
        Copy a template schedule into the workspace for ``deployment_id``.

        Each deployment gets its own copy; an existing copy of the same
        deployment is re-enabled instead.
        """
        result = await self._session.execute(
            select(AgentSchedule).where(
                AgentSchedule.workspace_id == workspace_id,
                AgentSchedule.template_id == template.id,
                _same_deployment(deployment_id),
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            existing.is_enabled = True
            await self._session.flush()
            return existing.id

        schedule = AgentSchedule(
            workspace_id=workspace_id,
            ai_agent_id=template.ai_agent_id,
            name=template.name,
            cron_expression=template.cron_expression,
            timezone=template.timezone,
            task_prompt=template.task_prompt,
            output_config=template.output_config,
            is_enabled=True,
            is_template=False,
            template_id=template.id,
            deployment_id=deployment_id,
        )
        self._session.add(schedule)
        await self._session.flush()
        return schedule.id

    @handle_db_errors("AgentSchedule")
    async def disable_for_agents(
        self, workspace_id: str, ai_agent_ids: list[str], keep_deployment_id: str | None = None
    ) -> int:
        """
        Disable the enabled workspace schedules of ``ai_agent_ids``.

        Copies made for ``keep_deployment_id`` stay enabled.
        """
        if not ai_agent_ids:
            return 0
        result = await self._session.execute(
            update(AgentSchedule)
            .where(
                AgentSchedule.workspace_id == workspace_id,
                AgentSchedule.ai_agent_id.in_(ai_agent_ids),
                AgentSchedule.is_enabled.is_(True),
                AgentSchedule.is_template.is_(False),
                or_(
                    AgentSchedule.deployment_id.is_(None),
                    AgentSchedule.deployment_id != keep_deployment_id,
                ),
            )
            .values(is_enabled=False)
        )
        await self._session.flush()
        return result.rowcount or 0

    @handle_db_errors("AgentScheduleExecution")
    async def mark_running(self, execution_id: str, started_at: datetime) -> None:
        await self._update_execution(execution_id, status="running", started_at=started_at)

    @handle_db_errors("AgentScheduleExecution")
    async def mark_finished(
        self,
        execution_id: str,
        status: str,
        completed_at: datetime,
        duration_ms: int,
        result: dict[str, Any] | None = None,
        tool_calls: list[dict[str, Any]] | None = None,
        tokens_input: int | None = None,
        tokens_output: int | None = None,
        error_message: str | None = None,
    ) -> None:
        await self._update_execution(
            execution_id,
            status=status,
            completed_at=completed_at,
            duration_ms=duration_ms,
            result=result,
            tool_calls=tool_calls,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            error_message=error_message,
        )

    async def _update_execution(self, execution_id: str, **values: Any) -> None:
        await self._session.execute(
            update(AgentScheduleExecution)
            .where(AgentScheduleExecution.id == execution_id)
            .values(**values)
        )
        await self._session.flush()
