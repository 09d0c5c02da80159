"""Errors raised while authenticating API callers."""

from agentdesk.domain.shared_kernel import DomainException


class AuthenticationRequiredError(DomainException):
    """No valid API key or session accompanied the request."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class AdminRequiredError(DomainException):
    def __init__(self, user_id: str, message: str = "Admin access required") -> None:
        self.user_id = user_id
        super().__init__(message)
