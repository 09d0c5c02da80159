"""Workspace-level customizations layered over a deployed team snapshot."""

import copy
from dataclasses import asdict, dataclass, field
from typing import Any

from agentdesk.domain.model.team.team_config import DeployedMind, DeployedTeamConfig


@dataclass
class AgentOverride:
    """Per-agent overrides; ``None`` means keep the snapshot value."""

    system_prompt: str | None = None
    model: str | None = None
    is_enabled: bool | None = None


@dataclass
class Customizations:
    disabled_agents: list[str] = field(default_factory=list)
    disabled_delegations: list[str] = field(default_factory=list)
    added_mind: list[DeployedMind] = field(default_factory=list)
    agent_overrides: dict[str, AgentOverride] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Customizations":
        data = data or {}
        return cls(
            disabled_agents=list(data.get("disabled_agents") or []),
            disabled_delegations=list(data.get("disabled_delegations") or []),
            added_mind=[DeployedMind(**m) for m in data.get("added_mind") or []],
            agent_overrides={
                slug: AgentOverride(**override)
                for slug, override in (data.get("agent_overrides") or {}).items()
            },
        )

    def merged_with(self, update: dict[str, Any]) -> "Customizations":
        """Return a copy where each top-level field present in ``update`` replaces ours."""
        merged = self.to_dict()
        for key in ("disabled_agents", "disabled_delegations", "added_mind", "agent_overrides"):
            if update.get(key) is not None:
                merged[key] = update[key]
        return Customizations.from_dict(merged)


def apply_customizations(
    base: DeployedTeamConfig, customizations: Customizations
) -> DeployedTeamConfig:
    """Compute the active config from a base snapshot. ``base`` is not mutated."""
    config = copy.deepcopy(base)

    disabled_agents = set(customizations.disabled_agents)
    for agent in config.agents:
        agent.is_enabled = agent.slug not in disabled_agents

    disabled_delegations = set(customizations.disabled_delegations)
    for delegation in config.delegations:
        delegation.is_enabled = delegation.id not in disabled_delegations

    config.team_mind = config.team_mind + copy.deepcopy(customizations.added_mind)

    for agent in config.agents:
        override = customizations.agent_overrides.get(agent.slug)
        if override is None:
            continue
        if override.system_prompt is not None:
            agent.system_prompt = override.system_prompt
        if override.model is not None:
            agent.model = override.model
        if override.is_enabled is not None:
            agent.is_enabled = override.is_enabled

    return config
