"""Service providers for routers; runtime adapters live on ``app.state``."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.application.services.deployment_service import DeploymentService
from agentdesk.application.services.provisioning_service import ProvisioningService
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeFactory
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_db
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_resource_repository import (
    SqlAgentResourceRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_agent_template_repository import (
    SqlAgentTemplateRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_deployment_repository import (
    SqlDeploymentRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_schedule_repository import (
    SqlScheduleRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)


def get_llm_client(request: Request) -> LLMStreamPort:
    """Get the streaming LLM client from app state."""
    return request.app.state.llm_client


def get_tool_bridge_factory(request: Request) -> ToolBridgeFactory:
    """Get the tool bridge factory from app state."""
    return request.app.state.tool_bridge_factory


def build_deployment_service(session: AsyncSession) -> DeploymentService:
    schedule_repo = SqlScheduleRepository(session)
    return DeploymentService(
        deployment_repo=SqlDeploymentRepository(session),
        template_repo=SqlAgentTemplateRepository(session),
        schedule_repo=schedule_repo,
        provisioning=ProvisioningService(
            SqlAgentResourceRepository(session),
            SqlWorkspaceRepository(session),
            schedule_repo,
        ),
    )


def get_deployment_service(db: AsyncSession = Depends(get_db)) -> DeploymentService:
    return build_deployment_service(db)
