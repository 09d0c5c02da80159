"""
slowapi limiter shared by the app and the chat router.

Requests carrying an API key or session cookie are limited per credential,
so several users behind one proxy do not share a budget; anonymous requests
fall back to the client address.
"""

import hashlib

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from agentdesk.application.services.auth_service import AuthService
from agentdesk.configuration.config import get_settings


def rate_limit_key(request: Request) -> str:
    token = AuthService.extract_token(
        request.headers.get("authorization"),
        request.cookies.get(get_settings().auth_cookie_name),
    )
    if token:
        # Never keep raw credentials in the limiter storage
        return "key:" + hashlib.sha256(token.encode()).hexdigest()[:32]
    return "ip:" + get_remote_address(request)


def build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=rate_limit_key,
        default_limits=[settings.rate_limit_default],
        storage_uri=settings.rate_limit_storage_uri,
    )


limiter = build_limiter()
