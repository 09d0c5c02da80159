"""FastAPI dependencies: authentication and service wiring."""

from agentdesk.infrastructure.adapters.primary.web.dependencies.auth_dependencies import (
    get_current_user,
    require_admin,
)
from agentdesk.infrastructure.adapters.primary.web.dependencies.services import (
    get_deployment_service,
    get_llm_client,
    get_tool_bridge_factory,
)

__all__ = [
    "get_current_user",
    "require_admin",
    "get_deployment_service",
    "get_llm_client",
    "get_tool_bridge_factory",
]
