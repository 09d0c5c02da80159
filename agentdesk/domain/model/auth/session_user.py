from dataclasses import dataclass


@dataclass(frozen=True)
class SessionUser:
    """The authenticated caller of a request."""

    id: str
    email: str | None = None
    name: str | None = None
    is_admin: bool = False
