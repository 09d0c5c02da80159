"""Pytest configuration and shared fixtures for testing."""

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from agentdesk.configuration.config import Settings
from agentdesk.domain.model.auth.session_user import SessionUser
from agentdesk.domain.model.team.deployment import DeploymentStatus, WorkspaceDeployment
from agentdesk.domain.model.team.team_config import (
    DeployedAgent,
    DeployedDelegation,
    DeployedMind,
    DeployedRule,
    DeployedSkill,
    DeployedTeamConfig,
    DeployedTool,
    TeamInfo,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    AgentSchedule,
    AgentTool,
    AIAgent,
    AIAgentTool,
    Base,
    Profile,
    Team,
    TeamAgent,
    TeamDelegation,
    User,
    Workspace,
    WorkspaceMember,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_deployment_repository import (
    SqlDeploymentRepository,
)

# Constants
TEST_USER_ID = "550e8400-e29b-41d4-a716-446655440000"
TEST_WORKSPACE_ID = "550e8400-e29b-41d4-a716-446655440001"
MEMBER_USER_ID = "550e8400-e29b-41d4-a716-446655440002"
OUTSIDER_USER_ID = "550e8400-e29b-41d4-a716-446655440003"
OTHER_WORKSPACE_ID = "660e8400-e29b-41d4-a716-446655440004"

TEAM_ID = "team-finance"
HEAD_AGENT_ID = "agent-head"
BUDGET_AGENT_ID = "agent-budget"

# --- Database Fixtures ---


@pytest.fixture
async def test_engine():
    """Create a test database engine.

    Every session shares one in-memory connection, so services that open
    their own sessions see the same data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def db_session(test_db: AsyncSession) -> AsyncSession:
    """Alias for test_db."""
    return test_db


# --- Settings ---


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    """Settings with an Anthropic key and no ambient provider keys."""
    for env_var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "CRON_SECRET", "AGENT_WEBHOOK_SECRET"):
        monkeypatch.delenv(env_var, raising=False)
    return Settings(
        _env_file=None,
        ANTHROPIC_API_KEY="sk-ant-test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        CHAT_MAX_STEPS=3,
        DELEGATION_MAX_STEPS=3,
        SCHEDULE_MAX_STEPS=3,
    )


# --- Users and workspaces ---


def _add_person(session: AsyncSession, user_id: str, email: str, name: str, is_admin=False):
    session.add(User(id=user_id, email=email, full_name=name, is_active=True, is_admin=is_admin))
    session.add(Profile(id=user_id, email=email, full_name=name, is_agent=False))


@pytest.fixture
async def test_workspace(test_db: AsyncSession) -> Workspace:
    """A workspace owned by the test user, with one more member and an outsider."""
    _add_person(test_db, TEST_USER_ID, "owner@example.com", "Test Owner", is_admin=True)
    _add_person(test_db, MEMBER_USER_ID, "member@example.com", "Test Member")
    _add_person(test_db, OUTSIDER_USER_ID, "outsider@example.com", "Test Outsider")

    workspace = Workspace(
        id=TEST_WORKSPACE_ID,
        name="Test Workspace",
        slug="test-workspace",
        owner_id=TEST_USER_ID,
    )
    test_db.add(workspace)
    test_db.add(Workspace(id=OTHER_WORKSPACE_ID, name="Other Workspace", slug="other-workspace"))
    test_db.add(WorkspaceMember(workspace_id=TEST_WORKSPACE_ID, profile_id=TEST_USER_ID, role="owner"))
    test_db.add(
        WorkspaceMember(workspace_id=TEST_WORKSPACE_ID, profile_id=MEMBER_USER_ID, role="member")
    )
    await test_db.commit()
    return workspace


@pytest.fixture
def session_user() -> SessionUser:
    return SessionUser(id=TEST_USER_ID, email="owner@example.com", name="Test Owner", is_admin=True)


@pytest.fixture
def member_user() -> SessionUser:
    return SessionUser(id=MEMBER_USER_ID, email="member@example.com", name="Test Member")


@pytest.fixture
def outsider_user() -> SessionUser:
    return SessionUser(id=OUTSIDER_USER_ID, email="outsider@example.com", name="Test Outsider")


# --- Teams ---


@pytest.fixture
def team_config() -> DeployedTeamConfig:
    """In-memory two-agent team: a head agent that can delegate to a budget analyst."""
    head = DeployedAgent(
        id=HEAD_AGENT_ID,
        slug="finance-lead",
        name="Finance Lead",
        description="Answers general finance questions",
        system_prompt="You lead the finance team.",
        tools=[DeployedTool(id="tool-accounts", name="account_list")],
        rules=[DeployedRule(id="rule-1", rule_type="always", content="Cite amounts in USD")],
    )
    analyst = DeployedAgent(
        id=BUDGET_AGENT_ID,
        slug="budget-analyst",
        name="Budget Analyst",
        description="Tracks budgets",
        system_prompt="You analyse budgets.",
        tools=[DeployedTool(id="tool-budgets", name="budget_get_status")],
        skills=[DeployedSkill(id="skill-1", name="Variance", slug="variance", content="Compare.")],
    )
    return DeployedTeamConfig(
        team=TeamInfo(id=TEAM_ID, name="Finance Team", slug="finance-team", head_agent_id=HEAD_AGENT_ID),
        agents=[head, analyst],
        delegations=[
            DeployedDelegation(
                id="delegation-1",
                from_agent_slug="finance-lead",
                to_agent_slug="budget-analyst",
                condition="Budget questions",
            )
        ],
        team_mind=[
            DeployedMind(
                id="mind-1", name="Fiscal Year", slug="fiscal-year", content="Starts in April"
            )
        ],
    )


@pytest.fixture
async def seeded_team(test_db: AsyncSession, test_workspace: Workspace) -> Team:
    """The finance team stored as templates, with one tool and one template schedule."""
    test_db.add_all(
        [
            AIAgent(
                id=HEAD_AGENT_ID,
                name="Finance Lead",
                slug="finance-lead",
                system_prompt="You lead the finance team.",
                provider="anthropic",
                model="sonnet",
            ),
            AIAgent(
                id=BUDGET_AGENT_ID,
                name="Budget Analyst",
                slug="budget-analyst",
                system_prompt="You analyse budgets.",
                provider="anthropic",
                model="haiku",
            ),
            AgentTool(id="tool-budgets", name="budget_get_status", description="Budget status"),
        ]
    )
    await test_db.flush()
    team = Team(
        id=TEAM_ID,
        name="Finance Team",
        slug="finance-team",
        head_agent_id=HEAD_AGENT_ID,
        current_version=1,
    )
    test_db.add(team)
    test_db.add_all(
        [
            TeamAgent(team_id=TEAM_ID, agent_id=HEAD_AGENT_ID, display_order=0),
            TeamAgent(team_id=TEAM_ID, agent_id=BUDGET_AGENT_ID, display_order=1),
            TeamDelegation(
                team_id=TEAM_ID,
                from_agent_id=HEAD_AGENT_ID,
                to_agent_id=BUDGET_AGENT_ID,
                condition="Budget questions",
            ),
            AIAgentTool(agent_id=BUDGET_AGENT_ID, tool_id="tool-budgets"),
            AgentSchedule(
                ai_agent_id=BUDGET_AGENT_ID,
                name="Weekly budget review",
                cron_expression="0 9 * * 1",
                task_prompt="Summarize budget status",
                is_template=True,
            ),
        ]
    )
    await test_db.commit()
    return team


@pytest.fixture
async def active_deployment(
    test_db: AsyncSession, test_workspace: Workspace, team_config: DeployedTeamConfig
) -> WorkspaceDeployment:
    """The in-memory finance team deployed and active in the test workspace."""
    deployment = WorkspaceDeployment(
        workspace_id=TEST_WORKSPACE_ID,
        source_team_id=TEAM_ID,
        status=DeploymentStatus.ACTIVE,
        base_config=team_config,
        deployed_by=TEST_USER_ID,
    )
    await SqlDeploymentRepository(test_db).save(deployment)
    await test_db.commit()
    return deployment
