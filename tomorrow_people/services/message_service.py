"""
tomorrow_people.services.message_service — Messages, Threads & Presence
========================================================================

Everything that happens inside a channel once it exists:

* sending, editing and soft-deleting messages (with thread replies)
* emoji reactions, grouped per emoji for display
* read receipts and unread counts
* short-lived typing indicators
* pinned messages and message search

Message timestamps are assigned here rather than by the database so that
ordering, unread counts and ``last_message_at`` agree with each other.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, delete, func, select

from tomorrow_people.constants import as_utc, extract_mentions, iso, utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Channel,
    ChannelMember,
    ChannelMessage,
    ChannelRole,
    ChannelType,
    Event,
    MessageReaction,
    MessageReadReceipt,
    MessageType,
    PinnedMessage,
    Profile,
    TypingIndicator,
)
from tomorrow_people.engine.presence import typing_summary
from tomorrow_people.services import channel_service, event_access
from tomorrow_people.services.serializers import author_summaries

logger = logging.getLogger(__name__)

DELETED_PLACEHOLDER = "This message was deleted"
_ATTACHMENT_TYPES = {MessageType.IMAGE, MessageType.VIDEO, MessageType.FILE}
_MAX_CONTENT = 4000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _clean_attachments(attachments: list[dict] | None) -> list[dict]:
    cleaned: list[dict] = []
    for item in attachments or []:
        url = (item.get("url") or "").strip()
        if not url:
            raise ValueError("Attachment is missing a URL")
        kind = item.get("type") or MessageType.FILE.value
        if kind not in _ATTACHMENT_TYPES:
            raise ValueError(f"Invalid attachment type '{kind}'")
        cleaned.append({
            "type": kind,
            "url": url,
            "filename": item.get("filename") or item.get("name") or url.rsplit("/", 1)[-1],
            "size": item.get("size"),
            "thumbnail": item.get("thumbnail"),
        })
    return cleaned


def _resolve_mentions(session, channel_id: int, content: str) -> list[str]:
    """Map ``@handle`` tokens to ids of channel members.

    A handle matches a member's full name with spaces removed, their first
    name, or their e-mail local part (case-insensitive).
    """
    handles = extract_mentions(content)
    if not handles:
        return []
    rows = session.execute(
        select(Profile.id, Profile.full_name, Profile.email)
        .join(ChannelMember, ChannelMember.user_id == Profile.id)
        .where(ChannelMember.channel_id == channel_id)
    ).all()
    found: list[str] = []
    for handle in handles:
        for row in rows:
            name = (row.full_name or "").lower()
            keys = {name.replace(" ", ""), name.split(" ")[0] if name else ""}
            if row.email:
                keys.add(row.email.split("@", 1)[0].lower())
            if handle in keys and row.id not in found:
                found.append(row.id)
    return found


def _grouped_reactions(session, message_ids: list[int], viewer_id: str | None) -> dict[int, dict]:
    """``{message_id: {emoji: {count, user_ids, reacted_by_me}}}``."""
    grouped: dict[int, dict] = {mid: {} for mid in message_ids}
    if not message_ids:
        return grouped
    rows = session.scalars(
        select(MessageReaction)
        .where(MessageReaction.message_id.in_(message_ids))
        .order_by(MessageReaction.id)
    ).all()
    for r in rows:
        bucket = grouped[r.message_id].setdefault(
            r.emoji, {"count": 0, "user_ids": [], "reacted_by_me": False},
        )
        bucket["count"] += 1
        bucket["user_ids"].append(r.user_id)
        if r.user_id == viewer_id:
            bucket["reacted_by_me"] = True
    return grouped


def _message_dicts(session, messages: list[ChannelMessage], viewer_id: str | None) -> list[dict]:
    people = author_summaries(session, [m.user_id for m in messages])
    reactions = _grouped_reactions(session, [m.id for m in messages], viewer_id)
    out = []
    for m in messages:
        deleted = m.deleted_at is not None
        out.append({
            "id": m.id,
            "channel_id": m.channel_id,
            "user_id": m.user_id,
            "user": people.get(m.user_id),
            "content": DELETED_PLACEHOLDER if deleted else m.content,
            "message_type": m.message_type,
            "attachments": [] if deleted else list(m.attachments or []),
            "parent_message_id": m.parent_message_id,
            "thread_count": m.thread_count or 0,
            "mentioned_user_ids": [] if deleted else list(m.mentioned_user_ids or []),
            "is_deleted": deleted,
            "edited_at": iso(as_utc(m.edited_at)),
            "created_at": iso(as_utc(m.created_at)),
            "reactions": {} if deleted else reactions.get(m.id, {}),
        })
    return out


def _readable_channel(session, channel_id: int, user_id: str) -> Channel | None:
    channel = session.get(Channel, channel_id)
    if channel is None or not channel_service.can_read(session, channel, user_id):
        return None
    return channel


def _post(
    session,
    channel: Channel,
    user_id: str,
    content: str,
    *,
    attachments: list[dict],
    message_type: str | None,
    parent: ChannelMessage | None,
    now: datetime,
) -> ChannelMessage:
    """Permission checks + insert for a new message in *channel*."""
    if channel.is_archived:
        raise ValueError("This channel is archived")

    member = channel_service.membership(session, channel.id, user_id)
    if member is None:
        if channel.type != ChannelType.PUBLIC:
            raise PermissionError("You are not a member of this channel")
        member = channel_service.add_member_row(session, channel, user_id)
    if member.is_banned:
        raise PermissionError("You are banned from this channel")
    if channel_service.clear_expired_mute(member, now):
        raise PermissionError("You are muted in this channel")
    if channel.is_read_only and member.role not in (ChannelRole.OWNER, ChannelRole.ADMIN):
        raise PermissionError("This channel is read-only")

    if not message_type:
        message_type = attachments[0]["type"] if attachments else MessageType.TEXT.value
    elif message_type not in set(MessageType):
        raise ValueError(f"Invalid message type '{message_type}'")

    message = ChannelMessage(
        channel_id=channel.id,
        user_id=user_id,
        content=content,
        message_type=message_type,
        attachments=attachments,
        parent_message_id=parent.id if parent else None,
        thread_count=0,
        mentioned_user_ids=_resolve_mentions(session, channel.id, content),
        created_at=now,
        updated_at=now,
    )
    session.add(message)
    if parent is not None:
        parent.thread_count = (parent.thread_count or 0) + 1
    channel.last_message_at = now

    session.execute(delete(TypingIndicator).where(
        TypingIndicator.channel_id == channel.id, TypingIndicator.user_id == user_id,
    ))
    member.last_read_at = now
    session.flush()
    return message


# ---------------------------------------------------------------------------
# Sending & editing
# ---------------------------------------------------------------------------
def send_message(
    engine: Engine,
    channel_id: int,
    user_id: str,
    content: str | None,
    *,
    attachments: list[dict] | None = None,
    parent_message_id: int | None = None,
    message_type: str | None = None,
    now: datetime | None = None,
) -> dict | None:
    """Post a message (or a thread reply) to a channel.

    Empty text with attachments becomes "Shared N file(s)".  Returns None
    when the channel does not exist or is hidden from the sender.
    """
    now = now or utcnow()
    attachments = _clean_attachments(attachments)
    content = (content or "").strip()
    if not content:
        if not attachments:
            raise ValueError("Message cannot be empty")
        n = len(attachments)
        content = f"Shared {n} {'file' if n == 1 else 'files'}"
    if len(content) > _MAX_CONTENT:
        raise ValueError(f"Message must be at most {_MAX_CONTENT} characters")

    with get_session(engine) as session:
        channel = _readable_channel(session, channel_id, user_id)
        if channel is None:
            return None
        parent = None
        if parent_message_id is not None:
            parent = session.get(ChannelMessage, parent_message_id)
            if parent is None or parent.channel_id != channel_id or parent.deleted_at is not None:
                raise ValueError("Reply target not found in this channel")
            if parent.parent_message_id is not None:
                raise ValueError("Replies cannot be nested")
        message = _post(
            session, channel, user_id, content,
            attachments=attachments, message_type=message_type, parent=parent, now=now,
        )
        return _message_dicts(session, [message], user_id)[0]


def share_event(
    engine: Engine,
    channel_id: int,
    user_id: str,
    event_id: int,
    *,
    now: datetime | None = None,
) -> dict | None:
    """Post a summary of an event the sender can see."""
    now = now or utcnow()
    with get_session(engine) as session:
        channel = _readable_channel(session, channel_id, user_id)
        if channel is None:
            return None
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, user_id):
            raise ValueError("Event not found")
        when = as_utc(event.starts_at).strftime("%a %d %b %Y, %H:%M UTC")
        lines = [f"📅 {event.title}", when]
        if event.location:
            lines.append(f"📍 {event.location}")
        lines.append(f"/events/{event.id}")
        message = _post(
            session, channel, user_id, "\n".join(lines),
            attachments=[], message_type=MessageType.TEXT.value, parent=None, now=now,
        )
        return _message_dicts(session, [message], user_id)[0]


def edit_message(
    engine: Engine, message_id: int, user_id: str, content: str,
    *, now: datetime | None = None,
) -> dict | None:
    content = (content or "").strip()
    if not content:
        raise ValueError("Message cannot be empty")
    if len(content) > _MAX_CONTENT:
        raise ValueError(f"Message must be at most {_MAX_CONTENT} characters")
    now = now or utcnow()
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None or message.deleted_at is not None:
            return None
        if message.user_id != user_id:
            raise PermissionError("You can only edit your own messages")
        message.content = content
        message.mentioned_user_ids = _resolve_mentions(session, message.channel_id, content)
        message.edited_at = now
        message.updated_at = now
        session.flush()
        return _message_dicts(session, [message], user_id)[0]


def delete_message(
    engine: Engine, message_id: int, user_id: str, *, now: datetime | None = None,
) -> bool:
    """Soft-delete: the author or a channel moderator may remove a message."""
    now = now or utcnow()
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None or message.deleted_at is not None:
            return False
        if message.user_id != user_id:
            actor = channel_service.membership(session, message.channel_id, user_id)
            if not channel_service.is_mod(actor):
                raise PermissionError("You cannot delete this message")
        message.deleted_at = now
        message.deleted_by = user_id
        if message.parent_message_id is not None:
            parent = session.get(ChannelMessage, message.parent_message_id)
            if parent is not None:
                parent.thread_count = max((parent.thread_count or 0) - 1, 0)
        session.execute(delete(PinnedMessage).where(PinnedMessage.message_id == message_id))
        logger.info("User %s deleted message %s", user_id, message_id)
        return True


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------
def list_messages(
    engine: Engine,
    channel_id: int,
    viewer_id: str,
    *,
    before: int | None = None,
    limit: int = 50,
) -> list[dict] | None:
    """A page of top-level messages, oldest first.

    *before* is a message id cursor: the page holds the *limit* newest
    messages older than it.
    """
    limit = max(1, min(limit, 200))
    with get_session(engine) as session:
        if _readable_channel(session, channel_id, viewer_id) is None:
            return None
        stmt = select(ChannelMessage).where(
            ChannelMessage.channel_id == channel_id,
            ChannelMessage.parent_message_id.is_(None),
        )
        if before is not None:
            stmt = stmt.where(ChannelMessage.id < before)
        page = list(session.scalars(stmt.order_by(ChannelMessage.id.desc()).limit(limit)).all())
        page.reverse()
        return _message_dicts(session, page, viewer_id)


def list_thread(engine: Engine, message_id: int, viewer_id: str) -> dict | None:
    """``{"parent": ..., "replies": [...]}`` for a thread, oldest reply first."""
    with get_session(engine) as session:
        parent = session.get(ChannelMessage, message_id)
        if parent is None or _readable_channel(session, parent.channel_id, viewer_id) is None:
            return None
        replies = session.scalars(
            select(ChannelMessage)
            .where(ChannelMessage.parent_message_id == message_id)
            .order_by(ChannelMessage.id)
        ).all()
        rendered = _message_dicts(session, [parent, *replies], viewer_id)
        return {"parent": rendered[0], "replies": rendered[1:]}


def search_messages(
    engine: Engine,
    channel_id: int,
    viewer_id: str,
    query: str,
    *,
    limit: int = 50,
) -> list[dict] | None:
    """Messages containing every word of *query*, newest first."""
    words = [w.lower() for w in (query or "").split() if w.strip()]
    if not words:
        raise ValueError("Search query cannot be empty")
    with get_session(engine) as session:
        if _readable_channel(session, channel_id, viewer_id) is None:
            return None
        stmt = select(ChannelMessage).where(
            ChannelMessage.channel_id == channel_id,
            ChannelMessage.deleted_at.is_(None),
        )
        for word in words:
            stmt = stmt.where(func.lower(ChannelMessage.content).contains(word, autoescape=True))
        rows = session.scalars(stmt.order_by(ChannelMessage.id.desc()).limit(max(1, limit))).all()
        return _message_dicts(session, list(rows), viewer_id)


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
def toggle_reaction(engine: Engine, message_id: int, user_id: str, emoji: str) -> dict | None:
    """Add the reaction, or remove it if the user already reacted with *emoji*.

    Returns the message's grouped reactions.
    """
    emoji = (emoji or "").strip()
    if not emoji or len(emoji) > 32:
        raise ValueError("Invalid emoji")
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None or message.deleted_at is not None:
            return None
        if _readable_channel(session, message.channel_id, user_id) is None:
            return None
        existing = session.scalar(
            select(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
                MessageReaction.emoji == emoji,
            )
        )
        if existing is None:
            session.add(MessageReaction(message_id=message_id, user_id=user_id, emoji=emoji))
        else:
            session.delete(existing)
        session.flush()
        return _grouped_reactions(session, [message_id], user_id)[message_id]


# ---------------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------------
def mark_read(
    engine: Engine, channel_id: int, user_id: str, *, now: datetime | None = None,
) -> int | None:
    """Mark everything up to *now* as read.  Returns receipts written."""
    now = now or utcnow()
    with get_session(engine) as session:
        member = channel_service.membership(session, channel_id, user_id)
        if member is None:
            return None
        stmt = select(ChannelMessage.id).where(
            ChannelMessage.channel_id == channel_id,
            ChannelMessage.user_id != user_id,
            ChannelMessage.deleted_at.is_(None),
            ChannelMessage.created_at <= now,
        )
        if member.last_read_at is not None:
            stmt = stmt.where(ChannelMessage.created_at > member.last_read_at)
        already = select(MessageReadReceipt.message_id).where(MessageReadReceipt.user_id == user_id)
        ids = session.scalars(stmt.where(ChannelMessage.id.not_in(already))).all()
        for mid in ids:
            session.add(MessageReadReceipt(message_id=mid, user_id=user_id, read_at=now))
        member.last_read_at = now
        return len(ids)


def unread_count(engine: Engine, channel_id: int, user_id: str) -> int | None:
    with get_session(engine) as session:
        member = channel_service.membership(session, channel_id, user_id)
        if member is None:
            return None
        stmt = select(func.count()).select_from(ChannelMessage).where(
            ChannelMessage.channel_id == channel_id,
            ChannelMessage.user_id != user_id,
            ChannelMessage.deleted_at.is_(None),
        )
        if member.last_read_at is not None:
            stmt = stmt.where(ChannelMessage.created_at > member.last_read_at)
        return session.scalar(stmt) or 0


def read_by(engine: Engine, message_id: int, viewer_id: str) -> list[dict] | None:
    """Who has read a message, earliest first."""
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None or _readable_channel(session, message.channel_id, viewer_id) is None:
            return None
        rows = session.scalars(
            select(MessageReadReceipt)
            .where(MessageReadReceipt.message_id == message_id)
            .order_by(MessageReadReceipt.read_at, MessageReadReceipt.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        return [
            {"user_id": r.user_id, "user": people.get(r.user_id), "read_at": iso(as_utc(r.read_at))}
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Typing indicators
# ---------------------------------------------------------------------------
def set_typing(
    engine: Engine,
    channel_id: int,
    user_id: str,
    *,
    ttl_seconds: int = 10,
    now: datetime | None = None,
) -> bool:
    now = now or utcnow()
    with get_session(engine) as session:
        member = channel_service.membership(session, channel_id, user_id)
        if member is None or member.is_banned:
            return False
        row = session.scalar(
            select(TypingIndicator).where(
                TypingIndicator.channel_id == channel_id, TypingIndicator.user_id == user_id,
            )
        )
        expires = now + timedelta(seconds=ttl_seconds)
        if row is None:
            session.add(TypingIndicator(
                channel_id=channel_id, user_id=user_id, started_at=now, expires_at=expires,
            ))
        else:
            if as_utc(row.expires_at) <= now:
                row.started_at = now
            row.expires_at = expires
        return True


def clear_typing(engine: Engine, channel_id: int, user_id: str) -> None:
    with get_session(engine) as session:
        session.execute(delete(TypingIndicator).where(
            TypingIndicator.channel_id == channel_id, TypingIndicator.user_id == user_id,
        ))


def active_typers(
    engine: Engine, channel_id: int, viewer_id: str, *, now: datetime | None = None,
) -> dict:
    """``{"users": [{id, full_name}], "text": "..."}`` excluding the viewer.

    Expired rows are purged on the way.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        session.execute(delete(TypingIndicator).where(TypingIndicator.expires_at <= now))
        rows = session.scalars(
            select(TypingIndicator)
            .where(TypingIndicator.channel_id == channel_id, TypingIndicator.user_id != viewer_id)
            .order_by(TypingIndicator.started_at, TypingIndicator.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        users = [
            {"id": r.user_id, "full_name": people.get(r.user_id, {}).get("full_name", "Someone")}
            for r in rows
        ]
        return {"users": users, "text": typing_summary([u["full_name"] for u in users])}


# ---------------------------------------------------------------------------
# Pins
# ---------------------------------------------------------------------------
def pin_message(engine: Engine, message_id: int, actor_id: str) -> bool | None:
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None or message.deleted_at is not None:
            return None
        actor = channel_service.membership(session, message.channel_id, actor_id)
        if not channel_service.is_mod(actor):
            raise PermissionError("Only channel moderators can pin messages")
        exists = session.scalar(
            select(PinnedMessage.id).where(
                PinnedMessage.channel_id == message.channel_id,
                PinnedMessage.message_id == message_id,
            )
        )
        if exists is None:
            session.add(PinnedMessage(
                channel_id=message.channel_id, message_id=message_id, pinned_by=actor_id,
            ))
            logger.info("User %s pinned message %s", actor_id, message_id)
        return True


def unpin_message(engine: Engine, message_id: int, actor_id: str) -> bool | None:
    with get_session(engine) as session:
        message = session.get(ChannelMessage, message_id)
        if message is None:
            return None
        actor = channel_service.membership(session, message.channel_id, actor_id)
        if not channel_service.is_mod(actor):
            raise PermissionError("Only channel moderators can unpin messages")
        result = session.execute(delete(PinnedMessage).where(PinnedMessage.message_id == message_id))
        return result.rowcount > 0


def list_pins(engine: Engine, channel_id: int, viewer_id: str) -> list[dict] | None:
    with get_session(engine) as session:
        if _readable_channel(session, channel_id, viewer_id) is None:
            return None
        pins = session.scalars(
            select(PinnedMessage)
            .where(PinnedMessage.channel_id == channel_id)
            .order_by(PinnedMessage.pinned_at.desc(), PinnedMessage.id.desc())
        ).all()
        messages = {
            m.id: m for m in session.scalars(
                select(ChannelMessage).where(ChannelMessage.id.in_([p.message_id for p in pins]))
            ).all()
        }
        ordered = [messages[p.message_id] for p in pins if p.message_id in messages]
        rendered = _message_dicts(session, ordered, viewer_id)
        by_id = {r["id"]: r for r in rendered}
        return [
            {**by_id[p.message_id], "pinned_by": p.pinned_by}
            for p in pins if p.message_id in by_id
        ]
