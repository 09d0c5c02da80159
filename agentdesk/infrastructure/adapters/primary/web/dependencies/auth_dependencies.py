"""
Authentication dependencies for API key validation.

This file bridges FastAPI's dependency injection and the application's
AuthService. Tokens come from ``Authorization: Bearer`` (mobile clients)
or the session cookie (web).
"""

import logging

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.application.services.auth_service import AuthService
from agentdesk.configuration.config import get_settings
from agentdesk.domain.exceptions import AdminRequiredError, AuthenticationRequiredError
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.infrastructure.adapters.secondary.persistence.database import get_db
from agentdesk.infrastructure.adapters.secondary.persistence.sql_api_key_repository import (
    SqlAPIKeyRepository,
    SqlUserRepository,
)

logger = logging.getLogger(__name__)


async def authenticate_request(
    request: Request, db: AsyncSession, authorization: str | None = None
) -> SessionUser | None:
    """Resolve the caller of ``request``, or ``None`` when unauthenticated."""
    token = AuthService.extract_token(
        authorization, request.cookies.get(get_settings().auth_cookie_name)
    )
    auth_service = AuthService(
        user_repository=SqlUserRepository(db),
        api_key_repository=SqlAPIKeyRepository(db),
    )
    user = await auth_service.authenticate_token(token)
    if user is not None:
        await db.commit()
    return user


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> SessionUser:
    user = await authenticate_request(request, db, authorization)
    if user is None:
        raise AuthenticationRequiredError()
    return user


async def require_admin(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    if not user.is_admin:
        logger.warning(f"User {user.id} attempted an admin operation")
        raise AdminRequiredError(user.id)
    return user
