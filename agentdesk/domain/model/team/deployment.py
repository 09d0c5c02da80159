from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from agentdesk.domain.model.team.customizations import Customizations, apply_customizations
from agentdesk.domain.model.team.team_config import DeployedTeamConfig
from agentdesk.domain.shared_kernel import Entity


class DeploymentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    REPLACED = "replaced"
    FAILED = "failed"


@dataclass(kw_only=True)
class WorkspaceDeployment(Entity):
    """A team snapshot deployed into a workspace.

    At most one deployment per workspace is ``active``; new deployments are
    inserted ``paused`` and only activated after provisioning succeeds.
    """

    workspace_id: str
    source_team_id: str
    source_version: int = 1
    status: DeploymentStatus = DeploymentStatus.PAUSED
    base_config: DeployedTeamConfig
    customizations: Customizations = field(default_factory=Customizations)
    active_config: DeployedTeamConfig | None = None
    previous_deployment_id: str | None = None
    deployed_by: str | None = None
    deployed_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_customized_at: datetime | None = None
    last_customized_by: str | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.active_config is None:
            self.recompute()

    def recompute(self) -> None:
        self.active_config = apply_customizations(self.base_config, self.customizations)

    def customize(self, customizations: Customizations, user_id: str) -> None:
        self.customizations = customizations
        self.recompute()
        self.last_customized_at = datetime.now(UTC)
        self.last_customized_by = user_id

    @property
    def is_active(self) -> bool:
        return self.status == DeploymentStatus.ACTIVE


@dataclass
class DeploymentAgentResources:
    """Profile and channel provisioned for one deployed agent."""

    profile_id: str
    channel_id: str | None
    agent_slug: str
    agent_name: str


@dataclass
class ProvisionSummary:
    expected_agents: int = 0
    profiles: int = 0
    channels: int = 0
    schedules: int = 0
    templates: int = 0
    issues: list[str] = field(default_factory=list)
    resources: list[DeploymentAgentResources] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return (
            not self.issues
            and self.profiles >= self.expected_agents
            and self.channels >= self.expected_agents
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "expected_agents": self.expected_agents,
            "profiles": self.profiles,
            "channels": self.channels,
            "schedules": self.schedules,
            "templates": self.templates,
            "issues": list(self.issues),
            "is_complete": self.is_complete,
        }


@dataclass
class DeploymentOutcome:
    deployed: bool
    team_id: str
    deployment_id: str | None = None
    error: str | None = None
    error_code: str | None = None
    provisioning: ProvisionSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "deployed": self.deployed,
            "team_id": self.team_id,
            "deployment_id": self.deployment_id,
            "error": self.error,
            "error_code": self.error_code,
            "provisioning": self.provisioning.to_dict() if self.provisioning else None,
        }


@dataclass
class BatchResult:
    """Per-item outcome of a multi-workspace or multi-deployment operation."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed
