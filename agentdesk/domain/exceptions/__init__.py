"""
Domain exceptions for AgentDesk.

Repository errors wrap persistence failures; agent and deployment errors are
raised by application services and mapped to HTTP responses by the web layer.
"""

from agentdesk.domain.exceptions.agent_exceptions import (
    AgentNotFoundError,
    InvalidRequestError,
    NoAgentConfiguredError,
    NoHeadAgentError,
    ProviderNotConfiguredError,
    SpecialistRunError,
    ToolBridgeError,
    WorkspaceAccessDeniedError,
)
from agentdesk.domain.exceptions.auth_exceptions import (
    AdminRequiredError,
    AuthenticationRequiredError,
)
from agentdesk.domain.exceptions.deployment_exceptions import (
    DeploymentError,
    NoActiveDeploymentError,
    TeamNotFoundError,
)
from agentdesk.domain.exceptions.repository_exceptions import (
    ConnectionError,
    DuplicateEntityError,
    EntityNotFoundError,
    RepositoryError,
)

__all__ = [
    "RepositoryError",
    "EntityNotFoundError",
    "DuplicateEntityError",
    "ConnectionError",
    "InvalidRequestError",
    "AgentNotFoundError",
    "NoAgentConfiguredError",
    "NoHeadAgentError",
    "ProviderNotConfiguredError",
    "WorkspaceAccessDeniedError",
    "ToolBridgeError",
    "SpecialistRunError",
    "AuthenticationRequiredError",
    "AdminRequiredError",
    "TeamNotFoundError",
    "NoActiveDeploymentError",
    "DeploymentError",
]
