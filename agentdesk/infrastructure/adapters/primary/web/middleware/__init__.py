"""
Web middleware module.

Centralized exception handling for the FastAPI application.
"""

from agentdesk.infrastructure.adapters.primary.web.middleware.exception_handlers import (
    configure_exception_handlers,
)

__all__ = [
    "configure_exception_handlers",
]
