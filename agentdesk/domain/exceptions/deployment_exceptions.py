"""Errors raised by the team deployment workflow."""

from agentdesk.domain.shared_kernel import DomainException


class TeamNotFoundError(DomainException):
    def __init__(self, team_id: str) -> None:
        self.team_id = team_id
        super().__init__(f"Team not found: {team_id}")


class NoActiveDeploymentError(DomainException):
    def __init__(self, workspace_id: str) -> None:
        self.workspace_id = workspace_id
        super().__init__("No active deployment found for workspace")


class DeploymentError(DomainException):
    """A deployment step failed; ``code`` is a stable machine-readable reason."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)
