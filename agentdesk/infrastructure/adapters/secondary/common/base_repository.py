"""
Shared plumbing for the SQL repositories.

A repository that maps a domain entity onto one table subclasses
``BaseRepository`` and supplies ``_model_class``, ``_to_domain`` and
``_to_db``. Repositories that work on rows directly (schedules, agent
resources, workspaces) only use ``handle_db_errors``.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import wraps
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentdesk.domain.exceptions import (
    ConnectionError as DomainConnectionError,
    DuplicateEntityError,
    RepositoryError,
)

logger = logging.getLogger(__name__)

# PostgreSQL: 'Key (name)=(general) already exists'; SQLite: 'UNIQUE constraint failed: channels.name'
_PG_DUPLICATE_KEY = re.compile(r"Key \(([^)]+)\)=")
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


def _duplicate_field(error_text: str) -> str | None:
    for pattern in (_PG_DUPLICATE_KEY, _SQLITE_UNIQUE):
        match = pattern.search(error_text)
        if match:
            return match.group(1)
    lowered = error_text.lower()
    if "unique" in lowered or "duplicate" in lowered:
        return "id"
    return None


def handle_db_errors(entity_type: str) -> Callable[..., Any]:
    """Re-raise SQLAlchemy errors from the wrapped coroutine as ``RepositoryError`` subclasses."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except IntegrityError as e:
                field_name = _duplicate_field(str(e.orig or e))
                if field_name:
                    raise DuplicateEntityError(entity_type, field_name, original_error=e) from e
                raise RepositoryError(
                    f"Integrity error on {entity_type}", original_error=e
                ) from e
            except DBAPIError as e:
                if e.connection_invalidated or "connection" in str(e).lower():
                    logger.error(f"Database connection lost while operating on {entity_type}")
                    raise DomainConnectionError(entity_type, original_error=e) from e
                raise RepositoryError(f"Database error on {entity_type}", original_error=e) from e

        return wrapper

    return decorator


class BaseRepository[T, M](ABC):
    """Create-or-update, lookup and delete of one entity type backed by ``_model_class``."""

    _model_class: type[M]

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @abstractmethod
    def _to_domain(self, db_model: M | None) -> T | None: ...

    @abstractmethod
    def _to_db(self, domain_entity: T) -> M: ...

    def _update_fields(self, db_model: M, domain_entity: T) -> None:
        """Copy every non-key column from a freshly converted row; NOT NULL columns skip ``None``."""
        fresh = self._to_db(domain_entity)
        for column in self._model_class.__table__.columns:
            if column.primary_key:
                continue
            value = getattr(fresh, column.key)
            if value is not None or column.nullable:
                setattr(db_model, column.key, value)

    async def _get_row(self, entity_id: str) -> M | None:
        return await self._session.scalar(
            select(self._model_class).where(self._model_class.id == entity_id)
        )

    async def find_by_id(self, entity_id: str) -> T | None:
        if not entity_id:
            return None
        return self._to_domain(await self._get_row(entity_id))

    async def save(self, domain_entity: T) -> T:
        """Insert the entity, or update its row when one with the same id exists."""
        row = await self._get_row(domain_entity.id)
        if row is None:
            self._session.add(self._to_db(domain_entity))
        else:
            self._update_fields(row, domain_entity)
        await self._session.flush()
        return domain_entity

    async def delete(self, entity_id: str) -> bool:
        row = await self._get_row(entity_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
