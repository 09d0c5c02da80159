"""
Exception handlers for the AgentDesk API.

Every handled error becomes::

    {"error": {"type", "message", "error_id", "retryable", "details"?}}

The ``error_id`` is logged alongside the request path so a client report
can be matched to the server log line.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agentdesk.domain.exceptions import (
    AdminRequiredError,
    AgentNotFoundError,
    AuthenticationRequiredError,
    ConnectionError as RepositoryConnectionError,
    DeploymentError,
    DuplicateEntityError,
    EntityNotFoundError,
    InvalidRequestError,
    NoActiveDeploymentError,
    RepositoryError,
    TeamNotFoundError,
    WorkspaceAccessDeniedError,
)
from agentdesk.domain.shared_kernel import DomainException

logger = logging.getLogger(__name__)


@dataclass
class ErrorResponse:
    status_code: int
    error_type: str
    message: str
    error_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    details: dict[str, Any] | None = None
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "message": self.message,
            "error_id": self.error_id,
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return {"error": body}

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


def _reply(
    request: Request,
    exc: Exception,
    status_code: int,
    error_type: str,
    message: str,
    details: dict[str, Any] | None = None,
    retryable: bool = False,
) -> JSONResponse:
    response = ErrorResponse(
        status_code, error_type, message, details=details, retryable=retryable
    )
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{error_type} on {request.method} {request.url.path}: {exc} (error_id={response.error_id})",
        exc_info=exc if status_code >= 500 else None,
    )
    return response.to_response()


# === Persistence ===


async def entity_not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
    return _reply(
        request,
        exc,
        404,
        "EntityNotFound",
        f"{exc.entity_type} not found",
        details={"entity_type": exc.entity_type, "entity_id": exc.entity_id},
    )


async def duplicate_entity_handler(request: Request, exc: DuplicateEntityError) -> JSONResponse:
    return _reply(request, exc, 409, "DuplicateEntity", exc.message, details=exc.details)


async def repository_connection_handler(
    request: Request, exc: RepositoryConnectionError
) -> JSONResponse:
    return _reply(
        request,
        exc,
        503,
        "ServiceUnavailable",
        "The database is temporarily unavailable.",
        retryable=True,
    )


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    return _reply(request, exc, 500, "RepositoryError", "A database error occurred.")


# === Authentication ===


async def authentication_required_handler(
    request: Request, exc: AuthenticationRequiredError
) -> JSONResponse:
    response = _reply(request, exc, 401, "Unauthorized", str(exc))
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


async def admin_required_handler(request: Request, exc: AdminRequiredError) -> JSONResponse:
    return _reply(request, exc, 403, "Forbidden", str(exc))


# === Agents, workspaces and deployments ===


async def not_found_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Missing agents, teams and deployments; the type is the class name without ``Error``."""
    return _reply(request, exc, 404, type(exc).__name__.removesuffix("Error"), str(exc))


async def access_denied_handler(request: Request, exc: WorkspaceAccessDeniedError) -> JSONResponse:
    return _reply(request, exc, 403, "AccessDenied", str(exc))


async def deployment_error_handler(request: Request, exc: DeploymentError) -> JSONResponse:
    details = {"code": exc.code} if exc.code else None
    return _reply(request, exc, 400, "DeploymentError", str(exc), details=details)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    error_type = "InvalidRequest" if isinstance(exc, InvalidRequestError) else "DomainError"
    return _reply(request, exc, 400, error_type, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _reply(
        request,
        exc,
        500,
        "InternalServerError",
        "An unexpected error occurred. Please try again later.",
        retryable=True,
    )


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Register the handlers on ``app``.

    Starlette resolves a handler by walking the exception's MRO, so the
    ``RepositoryError`` and ``DomainException`` handlers only see what the
    more specific ones leave over.
    """
    handlers = {
        EntityNotFoundError: entity_not_found_handler,
        DuplicateEntityError: duplicate_entity_handler,
        RepositoryConnectionError: repository_connection_handler,
        RepositoryError: repository_error_handler,
        AuthenticationRequiredError: authentication_required_handler,
        AdminRequiredError: admin_required_handler,
        AgentNotFoundError: not_found_handler,
        TeamNotFoundError: not_found_handler,
        NoActiveDeploymentError: not_found_handler,
        WorkspaceAccessDeniedError: access_denied_handler,
        DeploymentError: deployment_error_handler,
        DomainException: domain_exception_handler,
        Exception: unhandled_exception_handler,
    }
    for exc_class, handler in handlers.items():
        app.add_exception_handler(exc_class, handler)
