"""
Team messaging tools: channels, channel membership and channel messages.

Human members post under their profile, whose id is the user id. Every
tool here except ``channel_list`` and ``channel_get`` needs a user
context. Deleting a message is a soft delete.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select

from agentdesk.infrastructure.adapters.secondary.persistence.models import (
    Channel,
    ChannelMember,
    Message,
    Profile,
    WorkspaceMember,
)
from agentdesk.infrastructure.adapters.secondary.persistence.sql_workspace_repository import (
    SqlWorkspaceRepository,
)
from agentdesk.mcp_server.context import ToolInvocation
from agentdesk.mcp_server.registry import ToolDefinition, workspace_schema
from agentdesk.mcp_server.results import AccessDeniedError, NotFoundError, ValidationError
from agentdesk.mcp_server.tools.common import (
    PAGINATION_PROPERTIES,
    id_property,
    nullable,
    page_bounds,
)

ADMIN_ROLES = {"owner", "admin"}
SEARCH_LIMIT = 20


async def _current_member(inv: ToolInvocation) -> WorkspaceMember:
    member = await SqlWorkspaceRepository(inv.session).get_member(
        inv.workspace_id, inv.require_user()
    )
    if member is None:
        raise AccessDeniedError()
    return member


async def _channel_member(
    inv: ToolInvocation, channel_id: str, profile_id: str | None
) -> ChannelMember | None:
    if profile_id is None:
        return None
    return await inv.session.scalar(
        select(ChannelMember).where(
            ChannelMember.channel_id == channel_id, ChannelMember.profile_id == profile_id
        )
    )


async def _find_channel(inv: ToolInvocation, channel_id: str) -> Channel:
    channel = await inv.session.scalar(
        select(Channel).where(Channel.id == channel_id, Channel.workspace_id == inv.workspace_id)
    )
    if channel is None:
        raise NotFoundError("Channel not found")
    return channel


async def _get_channel(inv: ToolInvocation, channel_id: str) -> Channel:
    """A channel the caller may see; private channels need membership."""
    channel = await _find_channel(inv, channel_id)
    if channel.is_private and await _channel_member(inv, channel.id, inv.user_id) is None:
        raise NotFoundError("Channel not found")
    return channel


async def _member_counts(inv: ToolInvocation, channel_ids: list[str]) -> dict[str, int]:
    if not channel_ids:
        return {}
    rows = await inv.session.execute(
        select(ChannelMember.channel_id, func.count(ChannelMember.id))
        .where(ChannelMember.channel_id.in_(channel_ids))
        .group_by(ChannelMember.channel_id)
    )
    return {channel_id: count for channel_id, count in rows}


def _check_channel_admin(channel: Channel, member: WorkspaceMember, action: str) -> None:
    if channel.created_by != member.profile_id and member.role not in ADMIN_ROLES:
        raise AccessDeniedError(f"Only the channel creator or admins can {action} the channel")


# === Channels ===


async def channel_list(inv: ToolInvocation) -> dict[str, Any]:
    query = select(Channel).where(Channel.workspace_id == inv.workspace_id)
    if not inv.get("include_private", False) or not inv.user_id:
        query = query.where(Channel.is_private.is_(False))
    channels = list((await inv.session.scalars(query.order_by(Channel.name))).all())

    if inv.get("include_private", False) and inv.user_id:
        joined = set(
            (
                await inv.session.scalars(
                    select(ChannelMember.channel_id).where(ChannelMember.profile_id == inv.user_id)
                )
            ).all()
        )
        channels = [c for c in channels if not c.is_private or c.id in joined]

    counts = await _member_counts(inv, [c.id for c in channels])
    return {
        "channels": [{**c.to_dict(), "member_count": counts.get(c.id, 0)} for c in channels],
        "count": len(channels),
    }


async def channel_get(inv: ToolInvocation) -> dict[str, Any]:
    channel = await _get_channel(inv, inv.require("channel_id"))
    counts = await _member_counts(inv, [channel.id])
    return {
        **channel.to_dict(),
        "member_count": counts.get(channel.id, 0),
        "is_member": await _channel_member(inv, channel.id, inv.user_id) is not None,
    }


async def channel_create(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    name = str(inv.require("name")).strip()
    existing = await inv.session.scalar(
        select(Channel.id).where(Channel.workspace_id == inv.workspace_id, Channel.name == name)
    )
    if existing:
        raise ValidationError("A channel with this name already exists")

    channel = Channel(
        workspace_id=inv.workspace_id,
        name=name,
        description=inv.get("description"),
        is_private=bool(inv.get("is_private", False)),
        created_by=member.profile_id,
    )
    inv.session.add(channel)
    await inv.session.flush()
    inv.session.add(ChannelMember(channel_id=channel.id, profile_id=member.profile_id))
    await inv.session.flush()
    return {"message": "Channel created successfully", "channel": channel.to_dict()}


async def channel_update(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    channel = await _get_channel(inv, inv.require("channel_id"))
    _check_channel_admin(channel, member, "update")
    values = inv.updates("name", "description", "is_private", clearable={"description"})
    for key, value in values.items():
        setattr(channel, key, value)
    await inv.session.flush()
    return {"message": "Channel updated successfully", "channel": channel.to_dict()}


async def channel_delete(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    channel = await _get_channel(inv, inv.require("channel_id"))
    _check_channel_admin(channel, member, "delete")
    await inv.session.delete(channel)
    return {
        "message": "Channel deleted successfully",
        "channel_id": channel.id,
        "channel_name": channel.name,
    }


# === Membership ===


async def _workspace_profile(inv: ToolInvocation, profile_id: str) -> WorkspaceMember:
    member = await SqlWorkspaceRepository(inv.session).get_member(inv.workspace_id, profile_id)
    if member is None:
        raise NotFoundError("Workspace member not found")
    return member


def _membership_dict(membership: ChannelMember, profile: Profile | None) -> dict[str, Any]:
    data = membership.to_dict()
    data["profile"] = (
        {
            "id": profile.id,
            "name": profile.full_name,
            "avatar_url": profile.avatar_url,
            "is_agent": profile.is_agent,
        }
        if profile
        else None
    )
    return data


async def channel_join(inv: ToolInvocation) -> dict[str, Any]:
    """Join a public channel; private channels only take members added from inside."""
    member = await _current_member(inv)
    channel = await _find_channel(inv, inv.require("channel_id"))
    if await _channel_member(inv, channel.id, member.profile_id) is not None:
        raise ValidationError("You are already a member of this channel")
    if channel.is_private:
        raise AccessDeniedError("Cannot join a private channel. Ask to be added by a member.")

    membership = ChannelMember(channel_id=channel.id, profile_id=member.profile_id)
    inv.session.add(membership)
    await inv.session.flush()
    return {"message": f"Joined channel #{channel.name}", "membership": membership.to_dict()}


async def channel_leave(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    channel = await _get_channel(inv, inv.require("channel_id"))
    if channel.created_by == member.profile_id:
        raise ValidationError("The channel creator cannot leave. Delete the channel instead.")
    membership = await _channel_member(inv, channel.id, member.profile_id)
    if membership is None:
        raise ValidationError("You are not a member of this channel")

    await inv.session.delete(membership)
    return {"message": f"Left channel #{channel.name}", "channel_id": channel.id}


async def channel_add_member(inv: ToolInvocation) -> dict[str, Any]:
    await _current_member(inv)
    # Private channels are only visible, and so only extendable, from inside
    channel = await _get_channel(inv, inv.require("channel_id"))
    target = await _workspace_profile(inv, inv.require("profile_id"))
    if await _channel_member(inv, channel.id, target.profile_id) is not None:
        raise ValidationError("User is already a member of this channel")

    membership = ChannelMember(channel_id=channel.id, profile_id=target.profile_id)
    inv.session.add(membership)
    await inv.session.flush()
    profile = await inv.session.get(Profile, target.profile_id)
    return {
        "message": "Member added to channel",
        "membership": _membership_dict(membership, profile),
    }


async def channel_remove_member(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    channel = await _get_channel(inv, inv.require("channel_id"))
    _check_channel_admin(channel, member, "remove members from")
    target = await _workspace_profile(inv, inv.require("profile_id"))
    if target.profile_id == channel.created_by:
        raise ValidationError("Cannot remove the channel creator")
    membership = await _channel_member(inv, channel.id, target.profile_id)
    if membership is None:
        raise NotFoundError("Channel member not found")

    await inv.session.delete(membership)
    return {
        "message": "Member removed from channel",
        "channel_id": channel.id,
        "profile_id": target.profile_id,
    }


async def channel_get_members(inv: ToolInvocation) -> dict[str, Any]:
    channel = await _get_channel(inv, inv.require("channel_id"))
    rows = (
        await inv.session.execute(
            select(ChannelMember, Profile)
            .outerjoin(Profile, ChannelMember.profile_id == Profile.id)
            .where(ChannelMember.channel_id == channel.id)
            .order_by(ChannelMember.joined_at, ChannelMember.id)
        )
    ).all()
    members = [_membership_dict(membership, profile) for membership, profile in rows]
    return {"members": members, "count": len(members), "channel_id": channel.id}


# === Messages ===


def _message_dict(message: Message, sender: Profile | None) -> dict[str, Any]:
    data = message.to_dict()
    data["sender"] = (
        {"id": sender.id, "name": sender.full_name, "avatar_url": sender.avatar_url}
        if sender
        else None
    )
    return data


def _messages_with_sender():
    return select(Message, Profile).outerjoin(Profile, Message.sender_id == Profile.id)


async def _get_message(inv: ToolInvocation, message_id: str) -> Message:
    message = await inv.session.scalar(
        select(Message).where(
            Message.id == message_id,
            Message.workspace_id == inv.workspace_id,
            Message.is_deleted.is_(False),
        )
    )
    if message is None:
        raise NotFoundError("Message not found")
    return message


async def message_list(inv: ToolInvocation) -> dict[str, Any]:
    """Most recent top-level messages of a channel, oldest first."""
    channel = await _get_channel(inv, inv.require("channel_id"))
    limit, offset = page_bounds(inv.arguments)
    query = _messages_with_sender().where(
        Message.channel_id == channel.id, Message.is_deleted.is_(False)
    )
    if inv.get("parent_id"):
        query = query.where(Message.parent_id == inv.get("parent_id"))
    else:
        query = query.where(Message.parent_id.is_(None))
    rows = (
        await inv.session.execute(
            query.order_by(Message.created_at.desc()).limit(limit).offset(offset)
        )
    ).all()
    messages = [_message_dict(message, sender) for message, sender in reversed(rows)]
    return {"channel_id": channel.id, "messages": messages, "count": len(messages)}


async def message_get(inv: ToolInvocation) -> dict[str, Any]:
    message = await _get_message(inv, inv.require("message_id"))
    await _get_channel(inv, message.channel_id)
    sender = await inv.session.get(Profile, message.sender_id)
    return _message_dict(message, sender)


async def message_send(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    content = str(inv.require("content")).strip()
    if not content:
        raise ValidationError("content is required")

    channel = await _find_channel(inv, inv.require("channel_id"))
    if await _channel_member(inv, channel.id, member.profile_id) is None:
        if channel.is_private:
            raise AccessDeniedError("You must be a member of this channel to send messages")
        inv.session.add(ChannelMember(channel_id=channel.id, profile_id=member.profile_id))

    parent_id = inv.get("parent_id")
    if parent_id:
        parent = await _get_message(inv, parent_id)
        if parent.channel_id != channel.id:
            raise NotFoundError("Parent message not found")

    message = Message(
        workspace_id=inv.workspace_id,
        channel_id=channel.id,
        sender_id=member.profile_id,
        content=content,
        parent_id=parent_id,
    )
    inv.session.add(message)
    await inv.session.flush()
    return {"message": "Message sent successfully", "data": message.to_dict()}


async def message_update(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    message = await _get_message(inv, inv.require("message_id"))
    if message.sender_id != member.profile_id:
        raise AccessDeniedError("You can only edit your own messages")
    message.content = str(inv.require("content"))
    message.is_edited = True
    message.edited_at = datetime.now(UTC)
    await inv.session.flush()
    return {"message": "Message updated successfully", "data": message.to_dict()}


async def message_delete(inv: ToolInvocation) -> dict[str, Any]:
    member = await _current_member(inv)
    message = await _get_message(inv, inv.require("message_id"))
    if message.sender_id != member.profile_id and member.role not in ADMIN_ROLES:
        raise AccessDeniedError("You can only delete your own messages")
    message.is_deleted = True
    message.deleted_at = datetime.now(UTC)
    await inv.session.flush()
    return {"message": "Message deleted successfully", "message_id": message.id}


async def message_search(inv: ToolInvocation) -> dict[str, Any]:
    """Content search over public channels and private channels the caller joined."""
    query_text = inv.require("query")
    limit, _ = page_bounds(inv.arguments, default_limit=SEARCH_LIMIT)

    visible = select(Channel.id).where(
        Channel.workspace_id == inv.workspace_id, Channel.is_private.is_(False)
    )
    if inv.user_id:
        visible = visible.union(
            select(ChannelMember.channel_id)
            .join(Channel, ChannelMember.channel_id == Channel.id)
            .where(Channel.workspace_id == inv.workspace_id, ChannelMember.profile_id == inv.user_id)
        )

    query = _messages_with_sender().where(
        Message.workspace_id == inv.workspace_id,
        Message.is_deleted.is_(False),
        Message.content.ilike(f"%{query_text}%"),
        Message.channel_id.in_(visible),
    )
    if inv.get("channel_id"):
        query = query.where(Message.channel_id == inv.get("channel_id"))
    if inv.get("sender_id"):
        query = query.where(Message.sender_id == inv.get("sender_id"))
    rows = (await inv.session.execute(query.order_by(Message.created_at.desc()).limit(limit))).all()
    messages = [_message_dict(message, sender) for message, sender in rows]
    return {"messages": messages, "count": len(messages), "query": query_text}


CHANNEL_ID = {"channel_id": id_property("Channel ID")}
MESSAGE_ID = {"message_id": id_property("Message ID")}
PROFILE_ID = {"profile_id": id_property("Profile ID of the workspace member")}

CHANNEL_FIELDS = {
    "name": {"type": "string", "minLength": 1, "maxLength": 100},
    "description": nullable({"type": "string"}),
    "is_private": {"type": "boolean"},
}


MESSAGING_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        "channel_list",
        "List channels in the workspace",
        workspace_schema(
            {
                "include_private": {
                    "type": "boolean",
                    "description": "Include private channels you are a member of",
                }
            }
        ),
        channel_list,
    ),
    ToolDefinition(
        "channel_get", "Get a channel", workspace_schema(CHANNEL_ID, ["channel_id"]), channel_get
    ),
    ToolDefinition(
        "channel_create",
        "Create a channel; the creator joins it",
        workspace_schema(CHANNEL_FIELDS, ["name"]),
        channel_create,
    ),
    ToolDefinition(
        "channel_update",
        "Update a channel (creator or workspace admins only)",
        workspace_schema({**CHANNEL_ID, **CHANNEL_FIELDS}, ["channel_id"]),
        channel_update,
    ),
    ToolDefinition(
        "channel_delete",
        "Delete a channel (creator or workspace admins only)",
        workspace_schema(CHANNEL_ID, ["channel_id"]),
        channel_delete,
    ),
    ToolDefinition(
        "channel_join",
        "Join a public channel",
        workspace_schema(CHANNEL_ID, ["channel_id"]),
        channel_join,
    ),
    ToolDefinition(
        "channel_leave",
        "Leave a channel (the creator cannot leave)",
        workspace_schema(CHANNEL_ID, ["channel_id"]),
        channel_leave,
    ),
    ToolDefinition(
        "channel_add_member",
        "Add a workspace member to a channel; private channels need the caller to be a member",
        workspace_schema({**CHANNEL_ID, **PROFILE_ID}, ["channel_id", "profile_id"]),
        channel_add_member,
    ),
    ToolDefinition(
        "channel_remove_member",
        "Remove a member from a channel (creator or workspace admins only)",
        workspace_schema({**CHANNEL_ID, **PROFILE_ID}, ["channel_id", "profile_id"]),
        channel_remove_member,
    ),
    ToolDefinition(
        "channel_get_members",
        "List the members of a channel",
        workspace_schema(CHANNEL_ID, ["channel_id"]),
        channel_get_members,
    ),
    ToolDefinition(
        "message_list",
        "List recent messages in a channel, or the replies to a message",
        workspace_schema(
            {
                **CHANNEL_ID,
                "parent_id": id_property("List replies to this message"),
                **PAGINATION_PROPERTIES,
            },
            ["channel_id"],
        ),
        message_list,
    ),
    ToolDefinition(
        "message_get", "Get a message", workspace_schema(MESSAGE_ID, ["message_id"]), message_get
    ),
    ToolDefinition(
        "message_send",
        "Send a message to a channel; public channels are joined automatically",
        workspace_schema(
            {
                **CHANNEL_ID,
                "content": {"type": "string", "minLength": 1},
                "parent_id": id_property("Reply to this message"),
            },
            ["channel_id", "content"],
        ),
        message_send,
    ),
    ToolDefinition(
        "message_update",
        "Edit one of your messages",
        workspace_schema({**MESSAGE_ID, "content": {"type": "string"}}, ["message_id", "content"]),
        message_update,
    ),
    ToolDefinition(
        "message_delete",
        "Delete a message (your own, or any message as a workspace admin)",
        workspace_schema(MESSAGE_ID, ["message_id"]),
        message_delete,
    ),
    ToolDefinition(
        "message_search",
        "Search messages by content",
        workspace_schema(
            {
                "query": {"type": "string"},
                **CHANNEL_ID,
                "sender_id": id_property("Only messages from this sender"),
                "limit": PAGINATION_PROPERTIES["limit"],
            },
            ["query"],
        ),
        message_search,
    ),
]
