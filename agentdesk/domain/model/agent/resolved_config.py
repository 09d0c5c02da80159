from dataclasses import dataclass, field

from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedTeamConfig,
)


@dataclass
class ResolvedAgentConfig:
    """The agent that will answer a chat request, and what it may use.

    ``team_config`` is set in team mode; ``None`` means the legacy single-agent
    path was taken.
    """

    agent_id: str
    agent_name: str
    agent_slug: str | None
    provider: str
    model: str
    system_prompt: str
    tool_names: list[str] = field(default_factory=list)
    delegation_targets: list[DeployedDelegation] = field(default_factory=list)
    team_config: DeployedTeamConfig | None = None
    agent: DeployedAgent | None = None

    @property
    def is_team_mode(self) -> bool:
        return self.team_config is not None

    @property
    def can_delegate(self) -> bool:
        return bool(self.delegation_targets)
