"""Errors raised while resolving and running agents."""

from agentdesk.domain.shared_kernel import DomainException


class InvalidRequestError(DomainException):
    """The request body failed validation."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid request: {reason}")


class AgentNotFoundError(DomainException):
    def __init__(self, agent_id: str | None = None, message: str = "Agent not found") -> None:
        self.agent_id = agent_id
        super().__init__(message)


class NoAgentConfiguredError(DomainException):
    """The workspace has neither a deployed team nor a usable agent."""

    def __init__(self, message: str = "No agent or team configured for this workspace") -> None:
        super().__init__(message)


class NoHeadAgentError(NoAgentConfiguredError):
    def __init__(self) -> None:
        super().__init__("No head agent configured for team")


class ProviderNotConfiguredError(DomainException):
    """No API key is available for the agent's LLM provider."""

    def __init__(self, provider: str, env_var: str) -> None:
        self.provider = provider
        self.env_var = env_var
        super().__init__(
            f"API key for {provider} is not configured. "
            f"Please set {env_var} environment variable."
        )


class WorkspaceAccessDeniedError(DomainException):
    def __init__(self, workspace_id: str) -> None:
        self.workspace_id = workspace_id
        super().__init__("Access denied to workspace")


class ToolBridgeError(DomainException):
    """The MCP tool server could not be started or answered with an error."""

    pass


class SpecialistRunError(DomainException):
    """A specialist answering an agent channel request failed."""

    def __init__(self, agent_slug: str, reason: str) -> None:
        self.agent_slug = agent_slug
        super().__init__(reason)
