"""
tomorrow_people.api.routes.channels — Channels, messages & moderation
======================================================================

Channel discovery and membership, direct messages, moderation, and the
message stream (threads, reactions, read receipts, typing, pins, search).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tomorrow_people.api.deps import get_config, get_current_user, get_engine, service_errors
from tomorrow_people.services import channel_service, message_service

router = APIRouter(tags=["channels"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ChannelCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: str = "public"
    description: str | None = None
    category_id: int | None = None
    event_id: int | None = None
    section_id: int | None = None
    project_id: int | None = None
    is_read_only: bool = False


class ChannelUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    description: str | None = None
    category_id: int | None = None
    is_read_only: bool | None = None


class ArchiveIn(BaseModel):
    archived: bool = True


class MembersIn(BaseModel):
    user_ids: list[str]


class NotificationsIn(BaseModel):
    enabled: bool


class DmIn(BaseModel):
    user_id: str


class MuteIn(BaseModel):
    duration_minutes: int | None = Field(default=None, ge=1)


class RoleIn(BaseModel):
    role: str


class AttachmentIn(BaseModel):
    url: str
    type: str | None = None
    name: str | None = None
    size: int | None = None


class MessageIn(BaseModel):
    content: str | None = None
    attachments: list[AttachmentIn] = Field(default_factory=list)
    parent_message_id: int | None = None


class MessageEdit(BaseModel):
    content: str = Field(min_length=1)


class ShareEventIn(BaseModel):
    event_id: int


class ReactionIn(BaseModel):
    emoji: str = Field(min_length=1, max_length=32)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------
@router.get("/channels")
def list_channels(
    type: str | None = Query(None),
    category_id: int | None = Query(None),
    include_archived: bool = Query(False),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    channels = channel_service.list_channels(
        engine, user["id"], type=type, category_id=category_id, include_archived=include_archived,
    )
    return {"channels": channels}


@router.get("/channels/categories")
def categories(engine=Depends(get_engine)):
    return {"categories": channel_service.list_categories(engine)}


@router.post("/channels", status_code=201)
def create_channel(
    body: ChannelCreate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return channel_service.create_channel(engine, user["id"], **body.model_dump())


@router.post("/channels/dm")
def direct_message(
    body: DmIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Open (or reuse) the private channel between the caller and another member."""
    with service_errors():
        return channel_service.find_or_create_dm(engine, user["id"], body.user_id)


@router.get("/channels/{channel_id}")
def get_channel(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    channel = channel_service.get_channel(engine, channel_id, user["id"])
    if channel is None:
        raise HTTPException(404, "Channel not found")
    return channel


@router.patch("/channels/{channel_id}")
def update_channel(
    channel_id: int,
    body: ChannelUpdate,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    kwargs = body.model_dump(exclude_unset=True)
    if not kwargs:
        raise HTTPException(400, "No fields to update")
    with service_errors():
        channel = channel_service.update_channel(engine, channel_id, user["id"], **kwargs)
    if channel is None:
        raise HTTPException(404, "Channel not found")
    return channel


@router.post("/channels/{channel_id}/archive")
def archive_channel(
    channel_id: int,
    body: ArchiveIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        channel = channel_service.archive_channel(engine, channel_id, user["id"], body.archived)
    if channel is None:
        raise HTTPException(404, "Channel not found")
    return channel


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
@router.post("/channels/{channel_id}/join")
def join(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        channel = channel_service.join_channel(engine, channel_id, user["id"])
    if channel is None:
        raise HTTPException(404, "Channel not found")
    return channel


@router.post("/channels/{channel_id}/leave", status_code=204)
def leave(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        left = channel_service.leave_channel(engine, channel_id, user["id"])
    if not left:
        raise HTTPException(404, "Not a member of this channel")


@router.get("/channels/{channel_id}/members")
def members(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = channel_service.list_members(engine, channel_id, user["id"])
    if rows is None:
        raise HTTPException(404, "Channel not found")
    return {"members": rows}


@router.post("/channels/{channel_id}/members")
def add_members(
    channel_id: int,
    body: MembersIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        added = channel_service.add_members(engine, channel_id, user["id"], body.user_ids)
    if added is None:
        raise HTTPException(404, "Channel not found")
    return {"added": added}


@router.put("/channels/{channel_id}/notifications")
def notifications(
    channel_id: int,
    body: NotificationsIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    if not channel_service.set_notifications(engine, channel_id, user["id"], body.enabled):
        raise HTTPException(404, "Not a member of this channel")
    return {"notifications_enabled": body.enabled}


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def _moderated(result):
    if result is None:
        raise HTTPException(404, "Member not found")
    return result


@router.post("/channels/{channel_id}/members/{user_id}/mute")
def mute(
    channel_id: int,
    user_id: str,
    body: MuteIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return _moderated(channel_service.mute_member(
            engine, channel_id, user["id"], user_id, body.duration_minutes,
        ))


@router.delete("/channels/{channel_id}/members/{user_id}/mute")
def unmute(
    channel_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return _moderated(channel_service.unmute_member(engine, channel_id, user["id"], user_id))


@router.post("/channels/{channel_id}/members/{user_id}/ban")
def ban(
    channel_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return _moderated(channel_service.ban_member(engine, channel_id, user["id"], user_id))


@router.delete("/channels/{channel_id}/members/{user_id}/ban")
def unban(
    channel_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return _moderated(channel_service.unban_member(engine, channel_id, user["id"], user_id))


@router.put("/channels/{channel_id}/members/{user_id}/role")
def set_role(
    channel_id: int,
    user_id: str,
    body: RoleIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        return _moderated(channel_service.set_member_role(
            engine, channel_id, user["id"], user_id, body.role,
        ))


@router.post("/channels/{channel_id}/members/{user_id}/transfer")
def transfer(
    channel_id: int,
    user_id: str,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        done = channel_service.transfer_ownership(engine, channel_id, user["id"], user_id)
    if not done:
        raise HTTPException(404, "Channel not found")
    return {"owner_id": user_id}


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
@router.get("/channels/{channel_id}/messages")
def list_messages(
    channel_id: int,
    before: int | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    messages = message_service.list_messages(
        engine, channel_id, user["id"], before=before, limit=limit,
    )
    if messages is None:
        raise HTTPException(404, "Channel not found")
    return {"messages": messages}


@router.post("/channels/{channel_id}/messages", status_code=201)
def send_message(
    channel_id: int,
    body: MessageIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        message = message_service.send_message(
            engine,
            channel_id,
            user["id"],
            body.content,
            attachments=[a.model_dump(exclude_none=True) for a in body.attachments],
            parent_message_id=body.parent_message_id,
        )
    if message is None:
        raise HTTPException(404, "Channel not found")
    return message


@router.post("/channels/{channel_id}/share-event", status_code=201)
def share_event(
    channel_id: int,
    body: ShareEventIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        message = message_service.share_event(engine, channel_id, user["id"], body.event_id)
    if message is None:
        raise HTTPException(404, "Channel or event not found")
    return message


@router.get("/channels/{channel_id}/search")
def search(
    channel_id: int,
    q: str = Query(..., min_length=1, max_length=200),
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg=Depends(get_config),
):
    with service_errors():
        results = message_service.search_messages(
            engine, channel_id, user["id"], q, limit=cfg.message_search_limit,
        )
    if results is None:
        raise HTTPException(404, "Channel not found")
    return {"messages": results}


@router.patch("/messages/{message_id}")
def edit_message(
    message_id: int,
    body: MessageEdit,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        message = message_service.edit_message(engine, message_id, user["id"], body.content)
    if message is None:
        raise HTTPException(404, "Message not found")
    return message


@router.delete("/messages/{message_id}", status_code=204)
def delete_message(
    message_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        deleted = message_service.delete_message(engine, message_id, user["id"])
    if not deleted:
        raise HTTPException(404, "Message not found")


@router.get("/messages/{message_id}/thread")
def thread(
    message_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = message_service.list_thread(engine, message_id, user["id"])
    if result is None:
        raise HTTPException(404, "Message not found")
    return result


@router.post("/messages/{message_id}/reactions")
def react(
    message_id: int,
    body: ReactionIn,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    """Toggle an emoji reaction; returns the grouped reactions."""
    with service_errors():
        result = message_service.toggle_reaction(engine, message_id, user["id"], body.emoji)
    if result is None:
        raise HTTPException(404, "Message not found")
    return result


# ---------------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------------
@router.post("/channels/{channel_id}/read")
def mark_read(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    marked = message_service.mark_read(engine, channel_id, user["id"])
    if marked is None:
        raise HTTPException(404, "Not a member of this channel")
    return {"marked": marked}


@router.get("/channels/{channel_id}/unread")
def unread(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    count = message_service.unread_count(engine, channel_id, user["id"])
    if count is None:
        raise HTTPException(404, "Not a member of this channel")
    return {"unread": count}


@router.get("/messages/{message_id}/read-by")
def read_by(
    message_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    readers = message_service.read_by(engine, message_id, user["id"])
    if readers is None:
        raise HTTPException(404, "Message not found")
    return {"readers": readers}


# ---------------------------------------------------------------------------
# Typing
# ---------------------------------------------------------------------------
@router.post("/channels/{channel_id}/typing", status_code=204)
def start_typing(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
    cfg=Depends(get_config),
):
    if not message_service.set_typing(
        engine, channel_id, user["id"], ttl_seconds=cfg.typing_ttl_seconds,
    ):
        raise HTTPException(404, "Not a member of this channel")


@router.delete("/channels/{channel_id}/typing", status_code=204)
def stop_typing(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    message_service.clear_typing(engine, channel_id, user["id"])


@router.get("/channels/{channel_id}/typing")
def typing(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    if channel_service.get_channel(engine, channel_id, user["id"]) is None:
        raise HTTPException(404, "Channel not found")
    return message_service.active_typers(engine, channel_id, user["id"])


# ---------------------------------------------------------------------------
# Pins
# ---------------------------------------------------------------------------
@router.get("/channels/{channel_id}/pins")
def pins(
    channel_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    rows = message_service.list_pins(engine, channel_id, user["id"])
    if rows is None:
        raise HTTPException(404, "Channel not found")
    return {"pins": rows}


@router.post("/messages/{message_id}/pin")
def pin(
    message_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        pinned = message_service.pin_message(engine, message_id, user["id"])
    if pinned is None:
        raise HTTPException(404, "Message not found")
    return {"pinned": True}


@router.delete("/messages/{message_id}/pin")
def unpin(
    message_id: int,
    user: dict = Depends(get_current_user),
    engine=Depends(get_engine),
):
    with service_errors():
        removed = message_service.unpin_message(engine, message_id, user["id"])
    if removed is None:
        raise HTTPException(404, "Message not found")
    return {"pinned": False}
