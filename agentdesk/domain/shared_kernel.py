"""Building blocks shared by every domain model."""

import uuid
from abc import ABC
from dataclasses import dataclass, field


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(kw_only=True)
class Entity(ABC):
    """A domain object identified by ``id``; two entities with the same id are equal."""

    id: str = field(default_factory=new_id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, type(self)) and other.id == self.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))


class DomainException(Exception):
    """Base for errors the web layer turns into 4xx responses."""
