import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from agentdesk import __version__
from agentdesk.configuration.config import get_settings
from agentdesk.configuration.logging_config import configure_logging
from agentdesk.domain.ports.llm_stream_port import LLMStreamPort
from agentdesk.domain.ports.tool_bridge_port import ToolBridgeFactory
from agentdesk.infrastructure.adapters.primary.web.middleware import configure_exception_handlers
from agentdesk.infrastructure.adapters.primary.web.routers import (
    agent_channel,
    agent_chat,
    conversations,
    deployments,
    scheduled_execution,
)
from agentdesk.infrastructure.adapters.secondary.persistence.database import (
    dispose_database,
    initialize_database,
)
from agentdesk.infrastructure.llm import LiteLLMStreamClient
from agentdesk.infrastructure.mcp.tool_bridge import mcp_tool_bridge_factory
from agentdesk.infrastructure.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting AgentDesk application...")

    await initialize_database()

    yield

    logger.info("Shutting down...")
    await dispose_database()


def create_app(
    llm_client: LLMStreamPort | None = None,
    tool_bridge_factory: ToolBridgeFactory | None = None,
    run_lifespan: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        llm_client: Streaming LLM client; LiteLLM by default
        tool_bridge_factory: Launches the MCP tool server per run; the
            stdio subprocess bridge by default
        run_lifespan: Tests that bring their own database pass False
    """
    app = FastAPI(
        title="AgentDesk API",
        description="""
AgentDesk runs AI agent teams inside workspaces.

Chat responses are streamed as Server-Sent Events with the event types
`session`, `text`, `reasoning`, `tool_start`, `tool_result`, `done` and
`error`.

Authenticate with an API key (`ad_sk_<64_hex_chars>`) in the
`Authorization: Bearer` header, or with the session cookie.
        """,
        version=__version__,
        lifespan=lifespan if run_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.llm_client = llm_client or LiteLLMStreamClient(
        timeout=settings.llm_timeout, max_retries=settings.llm_max_retries
    )
    app.state.tool_bridge_factory = tool_bridge_factory or mcp_tool_bridge_factory(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    configure_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": __version__}

    app.include_router(agent_chat.router)
    app.include_router(conversations.router)
    app.include_router(scheduled_execution.router)
    app.include_router(agent_channel.router)
    app.include_router(deployments.router)

    return app


app = create_app()
