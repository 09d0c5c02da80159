"""
AuthService: API key based authentication.

Keys are opaque ``ad_sk_`` tokens sent as a bearer token (mobile clients)
or as the session cookie (web). Only the SHA-256 hash of a key is stored.
"""

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

from agentdesk.domain.model.auth.api_key import APIKey
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.ports.repositories import APIKeyRepository
from agentdesk.domain.shared_kernel import new_id
from agentdesk.infrastructure.adapters.secondary.persistence.models import WorkspaceMember
from agentdesk.infrastructure.adapters.secondary.persistence.sql_api_key_repository import (
    SqlUserRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "ad_sk_"


class AuthService:
    def __init__(
        self,
        user_repository: SqlUserRepository,
        api_key_repository: APIKeyRepository,
    ):
        self._user_repo = user_repository
        self._api_key_repo = api_key_repository

    @staticmethod
    def generate_api_key() -> str:
        return f"{API_KEY_PREFIX}{secrets.token_hex(32)}"

    @staticmethod
    def hash_api_key(key: str) -> str:
        return hashlib.sha256(key.encode()).hexdigest()

    @staticmethod
    def extract_token(authorization: str | None, cookie: str | None) -> str | None:
        """Bearer token first, then the session cookie."""
        if authorization and authorization.startswith("Bearer "):
            token = authorization[7:].strip()
            if token:
                return token
        return cookie or None

    async def create_api_key(
        self, user_id: str, name: str, expires_in_days: int | None = None
    ) -> tuple[str, APIKey]:
        """
        Create a key for a user.

        Returns:
            The plain key (shown once) and the stored record
        """
        plain_key = self.generate_api_key()
        expires_at = None
        if expires_in_days:
            expires_at = datetime.now(UTC) + timedelta(days=expires_in_days)

        api_key = APIKey(
            id=new_id(),
            user_id=user_id,
            key_hash=self.hash_api_key(plain_key),
            name=name,
            expires_at=expires_at,
        )
        await self._api_key_repo.save(api_key)
        logger.info(f"Created API key '{name}' for user {user_id}")
        return plain_key, api_key

    async def authenticate_token(self, token: str | None) -> SessionUser | None:
        """
        Resolve a token to its user.

        Returns ``None`` for a missing, malformed, unknown, inactive or expired
        key, and for a key whose user is inactive.
        """
        if not token or not token.startswith(API_KEY_PREFIX):
            return None

        api_key = await self._api_key_repo.find_by_hash(self.hash_api_key(token))
        if api_key is None or not api_key.is_active or api_key.is_expired():
            return None

        user = await self._user_repo.find_active(api_key.user_id)
        if user is None:
            logger.warning(f"API key {api_key.id} belongs to an inactive or missing user")
            return None

        await self._api_key_repo.update_last_used(api_key.id, datetime.now(UTC))
        return user


async def validate_workspace_access(
    workspace_repo: SqlWorkspaceRepository, user_id: str | None, workspace_id: str | None
) -> WorkspaceMember | None:
    """Membership row of ``user_id`` in ``workspace_id``, or ``None``."""
    if not user_id or not workspace_id:
        return None
    return await workspace_repo.get_member(workspace_id, user_id)
