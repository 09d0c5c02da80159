"""Unit tests for API key authentication."""

from datetime import UTC, datetime, timedelta

import pytest

from agentdesk.application.services.auth_service import (
    API_KEY_PREFIX,
    AuthService,
    validate_workspace_access,
)
from agentdesk.infrastructure.adapters.secondary.persistence.models import APIKey as DBAPIKey
from agentdesk.infrastructure.adapters.secondary.persistence.models import User
from agentdesk.infrastructure.adapters.secondary.persistence.sql_api_key_repository import (
    SqlAPIKeyRepository,
    SqlUserRepository,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)
from agentdesk.tests.conftest import (
    MEMBER_USER_ID,
    OUTSIDER_USER_ID,
    TEST_USER_ID,
    TEST_WORKSPACE_ID,
)


@pytest.fixture
def auth_service(test_db) -> AuthService:
    return AuthService(SqlUserRepository(test_db), SqlAPIKeyRepository(test_db))


@pytest.mark.unit
class TestKeyHelpers:
    def test_generated_key_format(self):
        key = AuthService.generate_api_key()
        assert key.startswith(API_KEY_PREFIX)
        assert len(key) == len(API_KEY_PREFIX) + 64

    def test_hash_is_stable_sha256(self):
        assert AuthService.hash_api_key("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    @pytest.mark.parametrize(
        "authorization,cookie,expected",
        [
            ("Bearer ad_sk_1", None, "ad_sk_1"),
            ("Bearer ad_sk_1", "ad_sk_2", "ad_sk_1"),
            ("Basic xyz", "ad_sk_2", "ad_sk_2"),
            ("Bearer ", None, None),
            (None, None, None),
        ],
    )
    def test_extract_token(self, authorization, cookie, expected):
        assert AuthService.extract_token(authorization, cookie) == expected


@pytest.mark.unit
class TestAuthenticate:
    async def test_created_key_authenticates(self, auth_service, test_workspace, test_db):
        plain_key, record = await auth_service.create_api_key(TEST_USER_ID, "cli")
        await test_db.commit()

        user = await auth_service.authenticate_token(plain_key)

        assert user.id == TEST_USER_ID
        assert user.is_admin is True
        stored = await test_db.get(DBAPIKey, record.id)
        assert stored.key_hash == AuthService.hash_api_key(plain_key)
        await test_db.refresh(stored)
        assert stored.last_used_at is not None

    @pytest.mark.parametrize("token", [None, "", "not-a-key", "ad_sk_unknown"])
    async def test_rejected_tokens(self, auth_service, test_workspace, token):
        assert await auth_service.authenticate_token(token) is None

    async def test_expired_key(self, auth_service, test_workspace, test_db):
        plain_key = AuthService.generate_api_key()
        test_db.add(
            DBAPIKey(
                key_hash=AuthService.hash_api_key(plain_key),
                name="old",
                user_id=TEST_USER_ID,
                expires_at=datetime.now(UTC) - timedelta(days=1),
            )
        )
        await test_db.commit()

        assert await auth_service.authenticate_token(plain_key) is None

    async def test_key_with_expiry_in_future(self, auth_service, test_workspace, test_db):
        plain_key, record = await auth_service.create_api_key(
            MEMBER_USER_ID, "phone", expires_in_days=30
        )
        await test_db.commit()

        assert record.expires_at > datetime.now(UTC)
        assert (await auth_service.authenticate_token(plain_key)).id == MEMBER_USER_ID

    async def test_inactive_user(self, auth_service, test_workspace, test_db):
        plain_key, _ = await auth_service.create_api_key(MEMBER_USER_ID, "cli")
        user = await test_db.get(User, MEMBER_USER_ID)
        user.is_active = False
        await test_db.commit()

        assert await auth_service.authenticate_token(plain_key) is None


@pytest.mark.unit
class TestWorkspaceAccess:
    async def test_member(self, test_db, test_workspace):
        member = await validate_workspace_access(
            SqlWorkspaceRepository(test_db), MEMBER_USER_ID, TEST_WORKSPACE_ID
        )
        assert member.role == "member"

    async def test_outsider(self, test_db, test_workspace):
        repo = SqlWorkspaceRepository(test_db)
        assert await validate_workspace_access(repo, OUTSIDER_USER_ID, TEST_WORKSPACE_ID) is None

    async def test_missing_ids(self, test_db):
        repo = SqlWorkspaceRepository(test_db)
        assert await validate_workspace_access(repo, None, TEST_WORKSPACE_ID) is None
        assert await validate_workspace_access(repo, TEST_USER_ID, None) is None
