"""
Deployed team configuration snapshot.

A snapshot is copied from a team template at deploy time and stored as JSON
on the workspace deployment (``base_config`` and ``active_config``). The JSON
keys are the snake_case field names below; ``to_dict``/``from_dict`` are the
only serialization path.
"""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class DeployedTool:
    id: str
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeployedSkill:
    id: str
    name: str
    slug: str
    content: str = ""


@dataclass
class DeployedMind:
    id: str
    name: str
    slug: str
    content: str
    category: str = "general"


@dataclass
class DeployedRule:
    id: str
    rule_type: str  # always | never | when
    content: str
    priority: int = 0
    condition: str | None = None


@dataclass
class DeployedAgent:
    id: str
    slug: str
    name: str
    description: str | None = None
    avatar_url: str | None = None
    system_prompt: str | None = None
    model: str = "sonnet"
    provider: str = "anthropic"
    is_enabled: bool = True
    tools: list[DeployedTool] = field(default_factory=list)
    skills: list[DeployedSkill] = field(default_factory=list)
    mind: list[DeployedMind] = field(default_factory=list)
    rules: list[DeployedRule] = field(default_factory=list)

    @property
    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.tools]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeployedAgent":
        return cls(
            id=data["id"],
            slug=data["slug"],
            name=data["name"],
            description=data.get("description"),
            avatar_url=data.get("avatar_url"),
            system_prompt=data.get("system_prompt"),
            model=data.get("model") or "sonnet",
            provider=data.get("provider") or "anthropic",
            is_enabled=data.get("is_enabled", True),
            tools=[DeployedTool(**t) for t in data.get("tools", [])],
            skills=[DeployedSkill(**s) for s in data.get("skills", [])],
            mind=[DeployedMind(**m) for m in data.get("mind", [])],
            rules=[DeployedRule(**r) for r in data.get("rules", [])],
        )


@dataclass
class DeployedDelegation:
    id: str
    from_agent_slug: str
    to_agent_slug: str
    condition: str | None = None
    context_template: str | None = None
    is_enabled: bool = True


@dataclass
class TeamInfo:
    id: str
    name: str
    slug: str
    head_agent_id: str | None = None


@dataclass
class DeployedTeamConfig:
    """Everything an agent of the team needs at chat time."""

    team: TeamInfo
    agents: list[DeployedAgent] = field(default_factory=list)
    delegations: list[DeployedDelegation] = field(default_factory=list)
    team_mind: list[DeployedMind] = field(default_factory=list)

    def get_head_agent(self) -> DeployedAgent | None:
        """The enabled head agent, else the first enabled agent."""
        enabled = [agent for agent in self.agents if agent.is_enabled]
        for agent in enabled:
            if agent.id == self.team.head_agent_id:
                return agent
        return enabled[0] if enabled else None

    def get_agent_by_slug(self, slug: str) -> DeployedAgent | None:
        for agent in self.agents:
            if agent.slug == slug and agent.is_enabled:
                return agent
        return None

    def get_agent_by_id(self, agent_id: str) -> DeployedAgent | None:
        for agent in self.agents:
            if agent.id == agent_id and agent.is_enabled:
                return agent
        return None

    def delegations_from(self, slug: str) -> list[DeployedDelegation]:
        """Enabled delegations whose source is ``slug`` and whose target is enabled."""
        return [
            d
            for d in self.delegations
            if d.from_agent_slug == slug
            and d.is_enabled
            and self.get_agent_by_slug(d.to_agent_slug) is not None
        ]

    def get_delegation(self, from_slug: str, to_slug: str) -> DeployedDelegation | None:
        for delegation in self.delegations_from(from_slug):
            if delegation.to_agent_slug == to_slug:
                return delegation
        return None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeployedTeamConfig":
        return cls(
            team=TeamInfo(**data["team"]),
            agents=[DeployedAgent.from_dict(a) for a in data.get("agents", [])],
            delegations=[DeployedDelegation(**d) for d in data.get("delegations", [])],
            team_mind=[DeployedMind(**m) for m in data.get("team_mind", [])],
        )


def slugify(name: str) -> str:
    """Lower-case ``name`` and replace whitespace runs with ``-``."""
    return "-".join(name.lower().split())
