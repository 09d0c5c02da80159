# flake8: noqa

# Auth
from agentdesk.domain.model.auth.api_key import APIKey
from agentdesk.domain.model.auth.session_user import SessionUser

# Agent conversations
from agentdesk.domain.model.agent.chat_event import ChatEvent
from agentdesk.domain.model.agent.conversation import (
    Conversation,
    ConversationMessage,
    MessageRole,
)
from agentdesk.domain.model.agent.resolved_config import ResolvedAgentConfig

# Teams and deployments
from agentdesk.domain.model.team.customizations import (
    AgentOverride,
    Customizations,
    apply_customizations,
)
from agentdesk.domain.model.team.deployment import (
    BatchResult,
    DeploymentAgentResources,
    DeploymentOutcome,
    DeploymentStatus,
    ProvisionSummary,
    WorkspaceDeployment,
)
from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedMind,
    DeployedRule,
    DeployedSkill,
    DeployedTeamConfig,
    DeployedTool,
    TeamInfo,
)

__all__ = [
    "APIKey",
    "SessionUser",
    "ChatEvent",
    "Conversation",
    "ConversationMessage",
    "MessageRole",
    "ResolvedAgentConfig",
    "AgentOverride",
    "Customizations",
    "apply_customizations",
    "BatchResult",
    "DeploymentAgentResources",
    "DeploymentOutcome",
    "DeploymentStatus",
    "ProvisionSummary",
    "WorkspaceDeployment",
    "DeployedAgent",
    "DeployedDelegation",
    "DeployedMind",
    "DeployedRule",
    "DeployedSkill",
    "DeployedTeamConfig",
    "DeployedTool",
    "TeamInfo",
]
