"""
tomorrow_people.services.channel_service — Channels, Members & Moderation
==========================================================================

Channels are chat rooms.  ``public`` channels are open to everyone (posting
auto-joins); ``private`` channels, including DMs, are members-only;
``event``, ``project`` and ``section`` channels hang off an event, a project
or a section.

Member roles rank ``owner`` > ``admin`` > ``moderator`` > ``member``.
Moderation (mute, ban) needs moderator rank or above and a strictly higher
rank than the target.  Role changes need admin rank or above, and nobody
can hand out a rank equal to their own.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, func, select

from tomorrow_people.constants import (
    MODERATOR_ROLES,
    PROJECT_ADMIN_ROLES,
    PROJECT_TEAM_ROLES,
    as_utc,
    utcnow,
)
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Channel,
    ChannelCategory,
    ChannelMember,
    ChannelRole,
    ChannelType,
    Event,
    MembershipStatus,
    Profile,
    Project,
    ProjectContributor,
    SectionMember,
)
from tomorrow_people.services import event_access
from tomorrow_people.services.serializers import author_summaries, row_to_dict

logger = logging.getLogger(__name__)

ROLE_RANK: dict[str, int] = {
    ChannelRole.MEMBER: 0,
    ChannelRole.MODERATOR: 1,
    ChannelRole.ADMIN: 2,
    ChannelRole.OWNER: 3,
}

_MAX_NAME = 100
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Session-level helpers (shared with message_service and section_service)
# ---------------------------------------------------------------------------
def membership(session, channel_id: int, user_id: str | None) -> ChannelMember | None:
    if not user_id:
        return None
    return session.scalar(
        select(ChannelMember).where(
            ChannelMember.channel_id == channel_id, ChannelMember.user_id == user_id,
        )
    )


def can_read(session, channel: Channel, user_id: str | None) -> bool:
    member = membership(session, channel.id, user_id)
    if member is not None:
        return not member.is_banned
    return channel.type == ChannelType.PUBLIC


def is_mod(member: ChannelMember | None) -> bool:
    return member is not None and not member.is_banned and member.role in MODERATOR_ROLES


def clear_expired_mute(member: ChannelMember, now: datetime) -> bool:
    """Unmute *member* if a timed mute has run out.  Returns whether they are still muted."""
    if not member.is_muted:
        return False
    until = as_utc(member.muted_until)
    if until is not None and until <= now:
        member.is_muted = False
        member.muted_until = None
        return False
    return True


def add_member_row(
    session, channel: Channel, user_id: str, role: str = ChannelRole.MEMBER.value,
) -> ChannelMember:
    """Add *user_id* to *channel* (idempotent; never demotes an existing member)."""
    member = membership(session, channel.id, user_id)
    if member is None:
        member = ChannelMember(
            channel_id=channel.id, user_id=user_id, role=role,
            is_muted=False, is_banned=False, notifications_enabled=True,
        )
        session.add(member)
        session.flush()
    return member


def remove_member_row(session, channel_id: int, user_id: str) -> bool:
    """Drop a membership.  A banned member's row is the ban record and stays."""
    member = membership(session, channel_id, user_id)
    if member is None or member.is_banned:
        return False
    session.delete(member)
    return True


def create_channel_row(
    session,
    *,
    name: str,
    creator_id: str,
    type: str = ChannelType.PUBLIC.value,
    description: str | None = None,
    category_id: int | None = None,
    event_id: int | None = None,
    section_id: int | None = None,
    project_id: int | None = None,
    is_read_only: bool = False,
) -> Channel:
    """Insert a channel and make *creator_id* its owner."""
    channel = Channel(
        name=name,
        description=description,
        type=type,
        category_id=category_id,
        event_id=event_id,
        section_id=section_id,
        project_id=project_id,
        created_by=creator_id,
        is_archived=False,
        is_read_only=is_read_only,
    )
    session.add(channel)
    session.flush()
    add_member_row(session, channel, creator_id, ChannelRole.OWNER.value)
    return channel


def _channel_dict(session, channel: Channel, viewer_id: str | None = None) -> dict:
    data = row_to_dict(channel)
    data["member_count"] = session.scalar(
        select(func.count()).select_from(ChannelMember).where(
            ChannelMember.channel_id == channel.id, ChannelMember.is_banned.is_(False),
        )
    ) or 0
    member = membership(session, channel.id, viewer_id)
    data["is_member"] = member is not None and not member.is_banned
    data["my_role"] = member.role if member else None
    return data


def _member_dict(member: ChannelMember, people: dict) -> dict:
    data = row_to_dict(member, exclude=("id",))
    data["user"] = people.get(member.user_id)
    return data


def _load_for_actor(session, channel_id: int, actor_id: str) -> tuple[Channel | None, ChannelMember | None]:
    channel = session.get(Channel, channel_id)
    if channel is None:
        return None, None
    return channel, membership(session, channel_id, actor_id)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------
def create_channel(
    engine: Engine,
    creator_id: str,
    *,
    name: str,
    type: str = ChannelType.PUBLIC.value,
    description: str | None = None,
    category_id: int | None = None,
    event_id: int | None = None,
    section_id: int | None = None,
    project_id: int | None = None,
    is_read_only: bool = False,
) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValueError("Channel name is required")
    if len(name) > _MAX_NAME:
        raise ValueError(f"Channel name must be at most {_MAX_NAME} characters")
    if type not in set(ChannelType):
        raise ValueError(f"Invalid channel type '{type}'")
    if sum(owner is not None for owner in (event_id, section_id, project_id)) > 1:
        raise ValueError("A channel belongs to one event, section or project at most")
    if type == ChannelType.EVENT and event_id is None:
        raise ValueError("Event channels need an event")
    if type == ChannelType.SECTION and section_id is None:
        raise ValueError("Section channels need a section")
    if type == ChannelType.PROJECT and project_id is None:
        raise ValueError("Project channels need a project")

    with get_session(engine) as session:
        if category_id is not None and session.get(ChannelCategory, category_id) is None:
            raise ValueError("Category not found")
        if event_id is not None:
            event = session.get(Event, event_id)
            if event is None:
                raise ValueError("Event not found")
            if not event_access.is_manager(session, event, creator_id):
                raise PermissionError("Only event hosts can create an event channel")
        if section_id is not None:
            admin = session.scalar(
                select(SectionMember.id).where(
                    SectionMember.section_id == section_id,
                    SectionMember.user_id == creator_id,
                    SectionMember.is_admin.is_(True),
                    SectionMember.status == MembershipStatus.APPROVED.value,
                )
            )
            if admin is None:
                raise PermissionError("Only section admins can create a section channel")
        team: list[ProjectContributor] = []
        if project_id is not None:
            if session.get(Project, project_id) is None:
                raise ValueError("Project not found")
            team = list(session.scalars(
                select(ProjectContributor).where(
                    ProjectContributor.project_id == project_id,
                    ProjectContributor.role.in_(sorted(PROJECT_TEAM_ROLES)),
                )
            ).all())
            if not any(
                c.user_id == creator_id and c.role in PROJECT_ADMIN_ROLES for c in team
            ):
                raise PermissionError("Only project admins can create a project channel")

        channel = create_channel_row(
            session,
            name=name,
            creator_id=creator_id,
            type=type,
            description=description,
            category_id=category_id,
            event_id=event_id,
            section_id=section_id,
            project_id=project_id,
            is_read_only=is_read_only,
        )
        for contributor in team:
            role = (
                ChannelRole.ADMIN.value if contributor.role in PROJECT_ADMIN_ROLES
                else ChannelRole.MEMBER.value
            )
            add_member_row(session, channel, contributor.user_id, role)
        logger.info("User %s created %s channel %s (%s)", creator_id, type, channel.id, name)
        return _channel_dict(session, channel, creator_id)


def get_channel(engine: Engine, channel_id: int, viewer_id: str | None) -> dict | None:
    with get_session(engine) as session:
        channel = session.get(Channel, channel_id)
        if channel is None or not can_read(session, channel, viewer_id):
            return None
        return _channel_dict(session, channel, viewer_id)


def list_channels(
    engine: Engine,
    user_id: str,
    *,
    type: str | None = None,
    category_id: int | None = None,
    include_archived: bool = False,
) -> list[dict]:
    """Public channels plus the user's own, most recent activity first."""
    with get_session(engine) as session:
        mine = select(ChannelMember.channel_id).where(
            ChannelMember.user_id == user_id, ChannelMember.is_banned.is_(False),
        )
        banned = select(ChannelMember.channel_id).where(
            ChannelMember.user_id == user_id, ChannelMember.is_banned.is_(True),
        )
        stmt = select(Channel).where(
            ((Channel.type == ChannelType.PUBLIC.value) & Channel.id.not_in(banned))
            | Channel.id.in_(mine)
        )
        if not include_archived:
            stmt = stmt.where(Channel.is_archived.is_(False))
        if type:
            stmt = stmt.where(Channel.type == type)
        if category_id is not None:
            stmt = stmt.where(Channel.category_id == category_id)

        channels = list(session.scalars(stmt).all())

        def _activity(c: Channel):
            last = as_utc(c.last_message_at) or as_utc(c.created_at)
            return (last or _EPOCH, c.id)

        channels.sort(key=_activity, reverse=True)
        return [_channel_dict(session, c, user_id) for c in channels]


def list_categories(engine: Engine) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(ChannelCategory).order_by(ChannelCategory.display_order, ChannelCategory.id)
        ).all()
        return [row_to_dict(r) for r in rows]


def update_channel(engine: Engine, channel_id: int, actor_id: str, **fields) -> dict | None:
    allowed = {"name", "description", "is_read_only", "category_id"}
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "name" in updates:
        updates["name"] = (updates["name"] or "").strip()
        if not updates["name"]:
            raise ValueError("Channel name is required")
    with get_session(engine) as session:
        channel, actor = _load_for_actor(session, channel_id, actor_id)
        if channel is None:
            return None
        if actor is None or ROLE_RANK.get(actor.role, 0) < ROLE_RANK[ChannelRole.ADMIN]:
            raise PermissionError("Only channel owners and admins can edit the channel")
        for key, value in updates.items():
            setattr(channel, key, value)
        session.flush()
        return _channel_dict(session, channel, actor_id)


def archive_channel(
    engine: Engine, channel_id: int, actor_id: str, archived: bool = True,
) -> dict | None:
    with get_session(engine) as session:
        channel, actor = _load_for_actor(session, channel_id, actor_id)
        if channel is None:
            return None
        if actor is None or ROLE_RANK.get(actor.role, 0) < ROLE_RANK[ChannelRole.ADMIN]:
            raise PermissionError("Only channel owners and admins can archive the channel")
        channel.is_archived = archived
        session.flush()
        logger.info("User %s %s channel %s", actor_id, "archived" if archived else "restored", channel_id)
        return _channel_dict(session, channel, actor_id)


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def join_channel(engine: Engine, channel_id: int, user_id: str) -> dict | None:
    with get_session(engine) as session:
        channel = session.get(Channel, channel_id)
        if channel is None:
            return None
        member = membership(session, channel_id, user_id)
        if member is not None and member.is_banned:
            raise PermissionError("You are banned from this channel")
        if member is None and channel.type != ChannelType.PUBLIC:
            raise PermissionError("This channel is invite-only")
        if channel.is_archived:
            raise ValueError("This channel is archived")
        add_member_row(session, channel, user_id)
        return _channel_dict(session, channel, user_id)


def leave_channel(engine: Engine, channel_id: int, user_id: str) -> bool:
    """Leave a channel.  The owner must hand over ownership first unless alone.

    Banned users are not members, so there is nothing to leave and the ban
    stays in place.
    """
    with get_session(engine) as session:
        member = membership(session, channel_id, user_id)
        if member is None or member.is_banned:
            return False
        if member.role == ChannelRole.OWNER:
            others = session.scalar(
                select(func.count()).select_from(ChannelMember).where(
                    ChannelMember.channel_id == channel_id, ChannelMember.user_id != user_id,
                )
            )
            if others:
                raise ValueError("Transfer ownership before leaving the channel")
        session.delete(member)
        return True


def add_members(
    engine: Engine, channel_id: int, actor_id: str, user_ids: list[str],
) -> list[str] | None:
    """Add users to a channel (moderators and above).  Returns newly added ids."""
    with get_session(engine) as session:
        channel, actor = _load_for_actor(session, channel_id, actor_id)
        if channel is None:
            return None
        if not is_mod(actor):
            raise PermissionError("Only channel moderators can add members")
        known = set(session.scalars(select(Profile.id).where(Profile.id.in_(user_ids))).all())
        added: list[str] = []
        for uid in user_ids:
            if uid not in known:
                raise ValueError(f"User {uid} not found")
            if membership(session, channel_id, uid) is None:
                add_member_row(session, channel, uid)
                added.append(uid)
        if added:
            logger.info("User %s added %d member(s) to channel %s", actor_id, len(added), channel_id)
        return added


def list_members(engine: Engine, channel_id: int, viewer_id: str) -> list[dict] | None:
    with get_session(engine) as session:
        channel = session.get(Channel, channel_id)
        if channel is None or not can_read(session, channel, viewer_id):
            return None
        members = session.scalars(
            select(ChannelMember)
            .where(ChannelMember.channel_id == channel_id)
            .order_by(ChannelMember.joined_at, ChannelMember.id)
        ).all()
        people = author_summaries(session, [m.user_id for m in members])
        members = sorted(members, key=lambda m: -ROLE_RANK.get(m.role, 0))
        return [_member_dict(m, people) for m in members]


def set_notifications(engine: Engine, channel_id: int, user_id: str, enabled: bool) -> bool:
    with get_session(engine) as session:
        member = membership(session, channel_id, user_id)
        if member is None:
            return False
        member.notifications_enabled = enabled
        return True


# ---------------------------------------------------------------------------
# Direct messages
# ---------------------------------------------------------------------------
def find_or_create_dm(engine: Engine, user_id: str, other_id: str) -> dict:
    """Reuse a private channel both users belong to, or open a new one."""
    if user_id == other_id:
        raise ValueError("You cannot message yourself")
    with get_session(engine) as session:
        other = session.get(Profile, other_id)
        if other is None:
            raise ValueError("User not found")

        shared = (
            select(ChannelMember.channel_id)
            .where(ChannelMember.user_id.in_([user_id, other_id]))
            .group_by(ChannelMember.channel_id)
            .having(func.count(func.distinct(ChannelMember.user_id)) == 2)
        )
        existing = session.scalar(
            select(Channel)
            .where(
                Channel.type == ChannelType.PRIVATE.value,
                Channel.is_archived.is_(False),
                Channel.id.in_(shared),
            )
            .order_by(Channel.id)
            .limit(1)
        )
        if existing is not None:
            return _channel_dict(session, existing, user_id)

        label = other.full_name or other.email or "User"
        channel = Channel(
            name=f"DM: {label}"[:_MAX_NAME],
            type=ChannelType.PRIVATE.value,
            created_by=user_id,
            is_archived=False,
            is_read_only=False,
        )
        session.add(channel)
        session.flush()
        add_member_row(session, channel, user_id)
        add_member_row(session, channel, other_id)
        logger.info("Opened DM channel %s between %s and %s", channel.id, user_id, other_id)
        return _channel_dict(session, channel, user_id)


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
def _moderate(session, channel_id: int, actor_id: str, target_id: str) -> ChannelMember | None:
    """Return the target member after checking the actor outranks them."""
    channel, actor = _load_for_actor(session, channel_id, actor_id)
    if channel is None:
        return None
    if not is_mod(actor):
        raise PermissionError("Only channel moderators can do that")
    target = membership(session, channel_id, target_id)
    if target is None:
        return None
    if target.user_id == actor_id:
        raise ValueError("You cannot moderate yourself")
    if ROLE_RANK.get(actor.role, 0) <= ROLE_RANK.get(target.role, 0):
        raise PermissionError("You cannot moderate a member of equal or higher rank")
    return target


def mute_member(
    engine: Engine,
    channel_id: int,
    actor_id: str,
    target_id: str,
    duration_minutes: int | None = None,
    *,
    now: datetime | None = None,
) -> dict | None:
    """Mute *target_id*; ``duration_minutes=None`` mutes until lifted."""
    if duration_minutes is not None and duration_minutes <= 0:
        raise ValueError("Mute duration must be positive")
    now = now or utcnow()
    with get_session(engine) as session:
        target = _moderate(session, channel_id, actor_id, target_id)
        if target is None:
            return None
        target.is_muted = True
        target.muted_until = now + timedelta(minutes=duration_minutes) if duration_minutes else None
        session.flush()
        logger.info("User %s muted %s in channel %s (%s min)", actor_id, target_id, channel_id,
                    duration_minutes or "indefinite")
        return _member_dict(target, author_summaries(session, [target_id]))


def unmute_member(engine: Engine, channel_id: int, actor_id: str, target_id: str) -> dict | None:
    with get_session(engine) as session:
        target = _moderate(session, channel_id, actor_id, target_id)
        if target is None:
            return None
        target.is_muted = False
        target.muted_until = None
        session.flush()
        return _member_dict(target, author_summaries(session, [target_id]))


def ban_member(engine: Engine, channel_id: int, actor_id: str, target_id: str) -> dict | None:
    with get_session(engine) as session:
        target = _moderate(session, channel_id, actor_id, target_id)
        if target is None:
            return None
        target.is_banned = True
        session.flush()
        logger.warning("User %s banned %s from channel %s", actor_id, target_id, channel_id)
        return _member_dict(target, author_summaries(session, [target_id]))


def unban_member(engine: Engine, channel_id: int, actor_id: str, target_id: str) -> dict | None:
    with get_session(engine) as session:
        target = _moderate(session, channel_id, actor_id, target_id)
        if target is None:
            return None
        target.is_banned = False
        session.flush()
        return _member_dict(target, author_summaries(session, [target_id]))


def set_member_role(
    engine: Engine, channel_id: int, actor_id: str, target_id: str, role: str,
) -> dict | None:
    if role not in ROLE_RANK:
        raise ValueError(f"Invalid role '{role}'")
    with get_session(engine) as session:
        channel, actor = _load_for_actor(session, channel_id, actor_id)
        if channel is None:
            return None
        if actor is None or ROLE_RANK.get(actor.role, 0) < ROLE_RANK[ChannelRole.ADMIN]:
            raise PermissionError("Only channel owners and admins can change roles")
        if ROLE_RANK[role] >= ROLE_RANK[actor.role]:
            raise PermissionError("You cannot grant a role equal to or above your own")
        target = _moderate(session, channel_id, actor_id, target_id)
        if target is None:
            return None
        target.role = role
        session.flush()
        logger.info("User %s set %s's role in channel %s → %s", actor_id, target_id, channel_id, role)
        return _member_dict(target, author_summaries(session, [target_id]))


def transfer_ownership(engine: Engine, channel_id: int, actor_id: str, target_id: str) -> bool:
    with get_session(engine) as session:
        actor = membership(session, channel_id, actor_id)
        if actor is None or actor.role != ChannelRole.OWNER:
            raise PermissionError("Only the channel owner can transfer ownership")
        target = membership(session, channel_id, target_id)
        if target is None or target.is_banned:
            raise ValueError("The new owner must be a member of the channel")
        actor.role = ChannelRole.ADMIN.value
        target.role = ChannelRole.OWNER.value
        logger.info("Channel %s ownership moved %s → %s", channel_id, actor_id, target_id)
        return True
