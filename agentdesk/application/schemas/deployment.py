"""Request and response models for the admin deployment API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from agentdesk.domain.model.team.deployment import WorkspaceDeployment


class DeployTeamRequest(BaseModel):
    team_id: str
    workspace_ids: list[str] = Field(..., min_length=1)


class MindEntry(BaseModel):
    id: str
    name: str
    slug: str
    content: str
    category: str = "general"


class AgentOverrideUpdate(BaseModel):
    system_prompt: str | None = None
    model: str | None = None
    is_enabled: bool | None = None


class CustomizationsUpdate(BaseModel):
    """Partial update; a field that is present replaces the stored value."""

    disabled_agents: list[str] | None = None
    disabled_delegations: list[str] | None = None
    added_mind: list[MindEntry] | None = None
    agent_overrides: dict[str, AgentOverrideUpdate] | None = None

    def to_update(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ToggleAgentRequest(BaseModel):
    enabled: bool


class DeploymentResponse(BaseModel):
    id: str
    workspace_id: str
    source_team_id: str
    source_version: int
    status: str
    customizations: dict[str, Any]
    active_config: dict[str, Any]
    previous_deployment_id: str | None = None
    deployed_by: str | None = None
    deployed_at: datetime
    last_customized_at: datetime | None = None
    last_customized_by: str | None = None
    error_message: str | None = None

    @classmethod
    def from_domain(cls, deployment: WorkspaceDeployment) -> "DeploymentResponse":
        return cls(
            id=deployment.id,
            workspace_id=deployment.workspace_id,
            source_team_id=deployment.source_team_id,
            source_version=deployment.source_version,
            status=deployment.status.value,
            customizations=deployment.customizations.to_dict(),
            active_config=deployment.active_config.to_dict() if deployment.active_config else {},
            previous_deployment_id=deployment.previous_deployment_id,
            deployed_by=deployment.deployed_by,
            deployed_at=deployment.deployed_at,
            last_customized_at=deployment.last_customized_at,
            last_customized_by=deployment.last_customized_by,
            error_message=deployment.error_message,
        )


class BatchResponse(BaseModel):
    success: bool
    succeeded: list[str]
    failed: list[dict[str, str]]
