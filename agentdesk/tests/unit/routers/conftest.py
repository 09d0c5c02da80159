"""Application and HTTP client fixtures for router tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from agentdesk.infrastructure.adapters.primary.web.dependencies import get_current_user
from agentdesk.infrastructure.adapters.primary.web.main import create_app
from agentdesk.infrastructure.adapters.primary.web.routers import (
    agent_channel,
    agent_chat,
    scheduled_execution,
)
from agentdesk.infrastructure.adapters.secondary.persistence.database import (
    get_db,
    get_session_factory,
)
from agentdesk.tests.fakes import FakeToolBridge, RecordingBridgeFactory, ScriptedLLM, text_step


@pytest.fixture
def llm():
    return ScriptedLLM(text_step("Hello from the team"))


@pytest.fixture
def bridge_factory():
    return RecordingBridgeFactory(FakeToolBridge(["account_list"]))


@pytest.fixture
def test_app(llm, bridge_factory, session_factory, session_user, test_settings, monkeypatch):
    """The API wired to the test database, signed in as the workspace owner."""
    monkeypatch.setattr(agent_chat, "settings", test_settings)
    monkeypatch.setattr(scheduled_execution, "get_settings", lambda: test_settings)
    monkeypatch.setattr(agent_channel, "get_settings", lambda: test_settings)

    app = create_app(llm_client=llm, tool_bridge_factory=bridge_factory, run_lifespan=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = lambda: session_user
    yield app
    app.dependency_overrides = {}


@pytest.fixture
def sign_in(test_app):
    """Switch the signed-in user; ``None`` signs out."""

    def _sign_in(user):
        if user is None:
            test_app.dependency_overrides.pop(get_current_user, None)
        else:
            test_app.dependency_overrides[get_current_user] = lambda: user

    return _sign_in


@pytest.fixture
async def async_client(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
        yield client
