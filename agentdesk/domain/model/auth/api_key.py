from dataclasses import dataclass, field
from datetime import UTC, datetime

from agentdesk.domain.shared_kernel import Entity


@dataclass(kw_only=True)
class APIKey(Entity):
    """API key used as a bearer token or session cookie value"""

    user_id: str
    key_hash: str
    name: str
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None
    last_used_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return expires_at <= now
