"""SQLAlchemy implementations of the API key and user lookups used by auth."""

import logging
from datetime import datetime

from sqlalchemy import select, update

from agentdesk.domain.model.auth.api_key import APIKey
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.ports.repositories import APIKeyRepository
from agentdesk.infrastructure.adapters.secondary.common.base_repository import (
    BaseRepository,
    handle_db_errors,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    APIKey as DBAPIKey,
    User as DBUser,
)

logger = logging.getLogger(__name__)


class SqlAPIKeyRepository(BaseRepository[APIKey, DBAPIKey], APIKeyRepository):
    _model_class = DBAPIKey

    @handle_db_errors("APIKey")
    async def find_by_hash(self, key_hash: str) -> APIKey | None:
        query = select(DBAPIKey).where(DBAPIKey.key_hash == key_hash)
        result = await self._session.execute(query)
        return self._to_domain(result.scalar_one_or_none())

    @handle_db_errors("APIKey")
    async def update_last_used(self, key_id: str, timestamp: datetime) -> None:
        await self._session.execute(
            update(DBAPIKey).where(DBAPIKey.id == key_id).values(last_used_at=timestamp)
        )

    # === Conversion methods ===

    def _to_domain(self, db_key: DBAPIKey | None) -> APIKey | None:
        if db_key is None:
            return None

        return APIKey(
            id=db_key.id,
            user_id=db_key.user_id,
            key_hash=db_key.key_hash,
            name=db_key.name,
            is_active=db_key.is_active,
            created_at=db_key.created_at,
            expires_at=db_key.expires_at,
            last_used_at=db_key.last_used_at,
        )

    def _to_db(self, domain_entity: APIKey) -> DBAPIKey:
        return DBAPIKey(
            id=domain_entity.id,
            key_hash=domain_entity.key_hash,
            name=domain_entity.name,
            user_id=domain_entity.user_id,
            is_active=domain_entity.is_active,
            expires_at=domain_entity.expires_at,
            last_used_at=domain_entity.last_used_at,
            created_at=domain_entity.created_at,
        )


class SqlUserRepository(BaseRepository[SessionUser, DBUser]):
    _model_class = DBUser

    @handle_db_errors("User")
    async def find_active(self, user_id: str) -> SessionUser | None:
        query = select(DBUser).where(DBUser.id == user_id, DBUser.is_active.is_(True))
        result = await self._session.execute(query)
        return self._to_domain(result.scalar_one_or_none())

    def _to_domain(self, db_user: DBUser | None) -> SessionUser | None:
        if db_user is None:
            return None
        return SessionUser(
            id=db_user.id,
            email=db_user.email,
            name=db_user.full_name,
            is_admin=db_user.is_admin,
        )

    def _to_db(self, domain_entity: SessionUser) -> DBUser:
        return DBUser(
            id=domain_entity.id,
            email=domain_entity.email,
            full_name=domain_entity.name,
            is_admin=domain_entity.is_admin,
        )
