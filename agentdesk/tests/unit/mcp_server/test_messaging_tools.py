"""Unit tests for the channel and message tools."""

import pytest
from sqlalchemy import select

from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Channel,
    ChannelMember,
    Message,
)
from agentdesk.mcp_server.results import ErrorCode
from agentdesk.tests.conftest import (
    MEMBER_USER_ID,
    OUTSIDER_USER_ID,
    TEST_USER_ID,
    TEST_WORKSPACE_ID,
)


@pytest.fixture
async def channels(test_db, test_workspace):
    """A public and a private channel, both created by and joined by the owner."""
    test_db.add_all(
        [
            Channel(id="ch-general", workspace_id=TEST_WORKSPACE_ID, name="general", created_by=TEST_USER_ID),
            Channel(
                id="ch-private",
                workspace_id=TEST_WORKSPACE_ID,
                name="leadership",
                is_private=True,
                created_by=TEST_USER_ID,
            ),
        ]
    )
    await test_db.flush()
    test_db.add_all(
        [
            ChannelMember(channel_id="ch-general", profile_id=TEST_USER_ID),
            ChannelMember(channel_id="ch-private", profile_id=TEST_USER_ID),
            Message(
                id="msg-owner",
                workspace_id=TEST_WORKSPACE_ID,
                channel_id="ch-general",
                sender_id=TEST_USER_ID,
                content="Quarterly numbers are in",
            ),
            Message(
                id="msg-secret",
                workspace_id=TEST_WORKSPACE_ID,
                channel_id="ch-private",
                sender_id=TEST_USER_ID,
                content="Quarterly bonus plan",
            ),
        ]
    )
    await test_db.commit()


@pytest.fixture
def as_member(make_context):
    return make_context(user_id=MEMBER_USER_ID)


@pytest.mark.unit
class TestChannels:
    async def test_list_hides_private_channels_by_default(self, call_tool, channels):
        result = await call_tool("channel_list")
        assert [c["name"] for c in result.data["channels"]] == ["general"]
        assert result.data["channels"][0]["member_count"] == 1

    async def test_list_private_channels_of_the_caller(self, call_tool, channels, as_member):
        owner = await call_tool("channel_list", {"include_private": True})
        assert {c["name"] for c in owner.data["channels"]} == {"general", "leadership"}

        member = await call_tool("channel_list", {"include_private": True}, as_member)
        assert [c["name"] for c in member.data["channels"]] == ["general"]

    async def test_private_channel_is_hidden_from_non_members(self, call_tool, channels, as_member):
        result = await call_tool("channel_get", {"channel_id": "ch-private"}, as_member)
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Channel not found"

    async def test_create_joins_creator(self, call_tool, channels, as_member, test_db):
        result = await call_tool("channel_create", {"name": " random "}, as_member)
        channel_id = result.data["channel"]["id"]
        assert result.data["channel"]["name"] == "random"

        members = (
            await test_db.scalars(
                select(ChannelMember.profile_id).where(ChannelMember.channel_id == channel_id)
            )
        ).all()
        assert members == [MEMBER_USER_ID]

    async def test_duplicate_name(self, call_tool, channels):
        result = await call_tool("channel_create", {"name": "general"})
        assert result.error == "A channel with this name already exists"

    async def test_only_creator_or_admin_can_update(self, call_tool, channels, as_member):
        denied = await call_tool(
            "channel_update", {"channel_id": "ch-general", "description": "x"}, as_member
        )
        assert denied.code == ErrorCode.ACCESS_DENIED

        allowed = await call_tool(
            "channel_update", {"channel_id": "ch-general", "description": "Company news"}
        )
        assert allowed.data["channel"]["description"] == "Company news"

    async def test_writes_need_a_user(self, call_tool, channels, make_context):
        result = await call_tool("channel_create", {"name": "bots"}, make_context(user_id=None))
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "This tool requires a user context"

    async def test_description_can_be_cleared(self, call_tool, channels):
        await call_tool("channel_update", {"channel_id": "ch-general", "description": "News"})

        result = await call_tool(
            "channel_update", {"channel_id": "ch-general", "description": None}
        )

        assert result.success
        assert result.data["channel"]["description"] is None

    async def test_name_cannot_be_cleared(self, call_tool, channels):
        result = await call_tool("channel_update", {"channel_id": "ch-general", "name": None})
        assert result.code == ErrorCode.VALIDATION
        assert result.error == "name cannot be cleared"


@pytest.mark.unit
class TestMembership:
    async def test_join_and_leave_public_channel(self, call_tool, channels, as_member):
        joined = await call_tool("channel_join", {"channel_id": "ch-general"}, as_member)
        assert joined.data["message"] == "Joined channel #general"

        again = await call_tool("channel_join", {"channel_id": "ch-general"}, as_member)
        assert again.error == "You are already a member of this channel"

        left = await call_tool("channel_leave", {"channel_id": "ch-general"}, as_member)
        assert left.data == {"message": "Left channel #general", "channel_id": "ch-general"}

        not_member = await call_tool("channel_leave", {"channel_id": "ch-general"}, as_member)
        assert not_member.error == "You are not a member of this channel"

    async def test_private_channel_cannot_be_joined(self, call_tool, channels, as_member):
        result = await call_tool("channel_join", {"channel_id": "ch-private"}, as_member)
        assert result.code == ErrorCode.ACCESS_DENIED
        assert result.error == "Cannot join a private channel. Ask to be added by a member."

    async def test_creator_cannot_leave(self, call_tool, channels):
        result = await call_tool("channel_leave", {"channel_id": "ch-general"})
        assert result.code == ErrorCode.VALIDATION

    async def test_member_added_to_private_channel_can_see_it(
        self, call_tool, channels, as_member
    ):
        added = await call_tool(
            "channel_add_member", {"channel_id": "ch-private", "profile_id": MEMBER_USER_ID}
        )
        assert added.success
        assert added.data["membership"]["profile"]["name"] == "Test Member"

        visible = await call_tool("channel_get", {"channel_id": "ch-private"}, as_member)
        assert visible.data["is_member"] is True
        assert visible.data["member_count"] == 2
        sent = await call_tool(
            "message_send", {"channel_id": "ch-private", "content": "Thanks"}, as_member
        )
        assert sent.success

    async def test_non_member_cannot_add_to_private_channel(
        self, call_tool, channels, as_member
    ):
        result = await call_tool(
            "channel_add_member",
            {"channel_id": "ch-private", "profile_id": MEMBER_USER_ID},
            as_member,
        )
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Channel not found"

    async def test_outsider_cannot_be_added(self, call_tool, channels):
        result = await call_tool(
            "channel_add_member", {"channel_id": "ch-general", "profile_id": OUTSIDER_USER_ID}
        )
        assert result.code == ErrorCode.NOT_FOUND
        assert result.error == "Workspace member not found"

    async def test_add_twice(self, call_tool, channels):
        arguments = {"channel_id": "ch-general", "profile_id": MEMBER_USER_ID}
        assert (await call_tool("channel_add_member", arguments)).success

        again = await call_tool("channel_add_member", arguments)
        assert again.error == "User is already a member of this channel"

    async def test_remove_member_from_private_channel(self, call_tool, channels, as_member):
        arguments = {"channel_id": "ch-private", "profile_id": MEMBER_USER_ID}
        await call_tool("channel_add_member", arguments)

        denied = await call_tool(
            "channel_remove_member",
            {"channel_id": "ch-private", "profile_id": TEST_USER_ID},
            as_member,
        )
        assert denied.code == ErrorCode.ACCESS_DENIED
        assert denied.error == (
            "Only the channel creator or admins can remove members from the channel"
        )

        removed = await call_tool("channel_remove_member", arguments)
        assert removed.data["profile_id"] == MEMBER_USER_ID
        hidden = await call_tool("channel_get", {"channel_id": "ch-private"}, as_member)
        assert hidden.code == ErrorCode.NOT_FOUND

    async def test_creator_cannot_be_removed(self, call_tool, channels):
        result = await call_tool(
            "channel_remove_member", {"channel_id": "ch-general", "profile_id": TEST_USER_ID}
        )
        assert result.error == "Cannot remove the channel creator"

    async def test_get_members(self, call_tool, channels, as_member):
        await call_tool("channel_join", {"channel_id": "ch-general"}, as_member)

        result = await call_tool("channel_get_members", {"channel_id": "ch-general"})

        assert result.data["count"] == 2
        assert {m["profile_id"] for m in result.data["members"]} == {TEST_USER_ID, MEMBER_USER_ID}
        assert all(m["profile"]["is_agent"] is False for m in result.data["members"])

    async def test_private_members_hidden_from_non_members(self, call_tool, channels, as_member):
        result = await call_tool("channel_get_members", {"channel_id": "ch-private"}, as_member)
        assert result.code == ErrorCode.NOT_FOUND


@pytest.mark.unit
class TestMessages:
    async def test_send_joins_public_channel(self, call_tool, channels, as_member, test_db):
        result = await call_tool(
            "message_send", {"channel_id": "ch-general", "content": "Hello team"}, as_member
        )

        assert result.success
        assert result.data["data"]["sender_id"] == MEMBER_USER_ID
        joined = await test_db.scalar(
            select(ChannelMember).where(
                ChannelMember.channel_id == "ch-general",
                ChannelMember.profile_id == MEMBER_USER_ID,
            )
        )
        assert joined is not None

    async def test_send_to_private_channel_requires_membership(
        self, call_tool, channels, as_member
    ):
        result = await call_tool(
            "message_send", {"channel_id": "ch-private", "content": "Hi"}, as_member
        )
        assert result.code == ErrorCode.ACCESS_DENIED
        assert result.error == "You must be a member of this channel to send messages"

    async def test_reply_must_stay_in_channel(self, call_tool, channels):
        result = await call_tool(
            "message_send",
            {"channel_id": "ch-general", "content": "Re", "parent_id": "msg-secret"},
        )
        assert result.error == "Parent message not found"

    async def test_list_includes_sender(self, call_tool, channels):
        result = await call_tool("message_list", {"channel_id": "ch-general"})
        assert result.data["count"] == 1
        assert result.data["messages"][0]["sender"]["name"] == "Test Owner"

    async def test_only_sender_can_edit(self, call_tool, channels, as_member):
        denied = await call_tool(
            "message_update", {"message_id": "msg-owner", "content": "Changed"}, as_member
        )
        assert denied.error == "You can only edit your own messages"

        edited = await call_tool("message_update", {"message_id": "msg-owner", "content": "Changed"})
        assert edited.data["data"]["is_edited"] is True

    async def test_delete_is_soft(self, call_tool, channels, test_db):
        result = await call_tool("message_delete", {"message_id": "msg-owner"})
        assert result.success

        stored = await test_db.get(Message, "msg-owner")
        await test_db.refresh(stored)
        assert stored.is_deleted is True
        assert stored.deleted_at is not None

        gone = await call_tool("message_get", {"message_id": "msg-owner"})
        assert gone.error == "Message not found"

    async def test_member_cannot_delete_others_message(self, call_tool, channels, as_member):
        result = await call_tool("message_delete", {"message_id": "msg-owner"}, as_member)
        assert result.error == "You can only delete your own messages"

    async def test_search_covers_visible_channels(self, call_tool, channels, as_member):
        owner = await call_tool("message_search", {"query": "quarterly"})
        assert {m["id"] for m in owner.data["messages"]} == {"msg-owner", "msg-secret"}

        member = await call_tool("message_search", {"query": "quarterly"}, as_member)
        assert [m["id"] for m in member.data["messages"]] == ["msg-owner"]
