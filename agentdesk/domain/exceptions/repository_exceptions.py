"""
Persistence errors raised by the SQL repositories.

``handle_db_errors`` translates SQLAlchemy failures into these, so services
and the MCP tool registry never catch driver exceptions directly:

    RepositoryError
    ├── EntityNotFoundError   (404 / NOT_FOUND)
    ├── DuplicateEntityError  (409)
    └── ConnectionError       (503, retryable)
"""

from typing import Any


class RepositoryError(Exception):
    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message} (caused by: {self.original_error})"


class EntityNotFoundError(RepositoryError):
    """A row the caller named does not exist or is not visible to them."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class DuplicateEntityError(RepositoryError):
    """A unique constraint rejected the write, e.g. a second channel with the same name."""

    def __init__(
        self, entity_type: str, field_name: str, original_error: Exception | None = None
    ) -> None:
        self.entity_type = entity_type
        self.field_name = field_name
        super().__init__(
            f"Duplicate {entity_type}: {field_name} already exists",
            original_error=original_error,
            details={"entity_type": entity_type, "field_name": field_name},
        )


class ConnectionError(RepositoryError):
    """The database could not be reached."""

    def __init__(self, entity_type: str, original_error: Exception | None = None) -> None:
        super().__init__(
            f"Database unavailable while operating on {entity_type}",
            original_error=original_error,
        )
