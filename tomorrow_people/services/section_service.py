"""
tomorrow_people.services.section_service — Sections, Membership & Invitations
==============================================================================

A section is a sub-community with its own member list, admins, custom
profile fields (:mod:`field_service`) and a chat channel.

Membership lifecycle::

    join ──► pending ──approve──► approved
      │         └─────reject────► rejected ──join──► pending
      └─(no approval needed)────► approved

Approval creates the member's visibility row (shown by default) and adds
them to the section's channels.  The creator is always an approved admin
and cannot leave.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select

from tomorrow_people.constants import ALLOWED_SECTION_FIELDS, utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Channel,
    ChannelRole,
    ChannelType,
    InvitationStatus,
    MembershipStatus,
    Profile,
    Section,
    SectionInvitation,
    SectionMember,
    SectionMembershipVisibility,
    SectionProfileData,
    SectionProfileField,
)
from tomorrow_people.database.seed import category_id_by_name
from tomorrow_people.services import channel_service, upload_service
from tomorrow_people.services.serializers import author_summaries, row_to_dict

logger = logging.getLogger(__name__)

_MAX_NAME = 100


# ---------------------------------------------------------------------------
# Session-level helpers (shared with field_service)
# ---------------------------------------------------------------------------
def member_row(session, section_id: int, user_id: str | None) -> SectionMember | None:
    if not user_id:
        return None
    return session.scalar(
        select(SectionMember).where(
            SectionMember.section_id == section_id, SectionMember.user_id == user_id,
        )
    )


def is_approved(session, section_id: int, user_id: str | None) -> bool:
    member = member_row(session, section_id, user_id)
    return member is not None and member.status == MembershipStatus.APPROVED


def is_admin(session, section_id: int, user_id: str | None) -> bool:
    member = member_row(session, section_id, user_id)
    return member is not None and member.is_admin and member.status == MembershipStatus.APPROVED


def can_view(session, section: Section, user_id: str | None) -> bool:
    if section.is_public:
        return True
    if member_row(session, section.id, user_id) is not None:
        return True
    return _pending_invitation(session, section.id, user_id) is not None


def _pending_invitation(session, section_id: int, user_id: str | None) -> SectionInvitation | None:
    if not user_id:
        return None
    return session.scalar(
        select(SectionInvitation).where(
            SectionInvitation.section_id == section_id,
            SectionInvitation.user_id == user_id,
            SectionInvitation.status == InvitationStatus.PENDING.value,
        )
    )


def _section_channels(session, section_id: int) -> list[Channel]:
    return list(session.scalars(select(Channel).where(Channel.section_id == section_id)).all())


def _approve(session, section: Section, member: SectionMember, approver_id: str | None) -> None:
    """Mark *member* approved and give them visibility + channel access."""
    member.status = MembershipStatus.APPROVED.value
    member.approved_at = utcnow()
    member.approved_by = approver_id
    visibility = session.scalar(
        select(SectionMembershipVisibility).where(
            SectionMembershipVisibility.section_id == section.id,
            SectionMembershipVisibility.user_id == member.user_id,
        )
    )
    if visibility is None:
        session.add(SectionMembershipVisibility(
            section_id=section.id, user_id=member.user_id, show_membership=True,
        ))
    role = ChannelRole.ADMIN.value if member.is_admin else ChannelRole.MEMBER.value
    for channel in _section_channels(session, section.id):
        existing = channel_service.membership(session, channel.id, member.user_id)
        if existing is None:
            channel_service.add_member_row(session, channel, member.user_id, role)
    session.flush()


def _drop_member(session, section_id: int, user_id: str) -> None:
    member = member_row(session, section_id, user_id)
    if member is not None:
        session.delete(member)
    visibility = session.scalar(
        select(SectionMembershipVisibility).where(
            SectionMembershipVisibility.section_id == section_id,
            SectionMembershipVisibility.user_id == user_id,
        )
    )
    if visibility is not None:
        session.delete(visibility)
    for channel in _section_channels(session, section_id):
        channel_service.remove_member_row(session, channel.id, user_id)
    session.flush()


def _section_dict(session, section: Section, viewer_id: str | None = None) -> dict:
    data = row_to_dict(section)
    data["member_count"] = session.scalar(
        select(func.count()).select_from(SectionMember).where(
            SectionMember.section_id == section.id,
            SectionMember.status == MembershipStatus.APPROVED.value,
        )
    ) or 0
    member = member_row(session, section.id, viewer_id)
    data["my_status"] = member.status if member else None
    data["is_admin"] = bool(member and member.is_admin and member.status == MembershipStatus.APPROVED)
    channel = session.scalar(
        select(Channel.id).where(Channel.section_id == section.id).order_by(Channel.id).limit(1)
    )
    data["channel_id"] = channel
    return data


def _load_admin(session, section_id: int, actor_id: str) -> Section | None:
    section = session.get(Section, section_id)
    if section is None:
        return None
    if not is_admin(session, section_id, actor_id):
        raise PermissionError("Only section admins can do that")
    return section


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------
def create_section(
    engine: Engine,
    creator_id: str,
    *,
    name: str,
    description: str | None = None,
    image_url: str | None = None,
    is_public: bool = True,
    requires_approval: bool = False,
) -> dict:
    """Create a section; the creator becomes its approved admin and owner of
    the section's "<name> Chat" channel."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Section name is required")
    if len(name) > _MAX_NAME:
        raise ValueError(f"Section name must be at most {_MAX_NAME} characters")

    with get_session(engine) as session:
        clash = session.scalar(
            select(Section.id).where(Section.creator_id == creator_id, Section.name == name)
        )
        if clash is not None:
            raise ValueError(f"You already have a section named '{name}'")

        section = Section(
            creator_id=creator_id,
            name=name,
            description=description,
            image_url=image_url,
            is_public=is_public,
            requires_approval=requires_approval,
        )
        session.add(section)
        session.flush()

        channel_service.create_channel_row(
            session,
            name=f"{name} Chat"[:_MAX_NAME],
            creator_id=creator_id,
            type=ChannelType.SECTION.value,
            description=f"Chat for members of {name}",
            category_id=category_id_by_name(session, "Sections"),
            section_id=section.id,
        )
        member = SectionMember(section_id=section.id, user_id=creator_id, is_admin=True)
        session.add(member)
        _approve(session, section, member, creator_id)
        logger.info("User %s created section %s (%s)", creator_id, section.id, name)
        return _section_dict(session, section, creator_id)


def get_section(engine: Engine, section_id: int, viewer_id: str | None = None) -> dict | None:
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not can_view(session, section, viewer_id):
            return None
        data = _section_dict(session, section, viewer_id)
        data["creator"] = author_summaries(session, [section.creator_id]).get(section.creator_id)
        return data


def list_sections(
    engine: Engine,
    viewer_id: str | None = None,
    *,
    search: str | None = None,
    mine: bool = False,
) -> list[dict]:
    """Public sections plus any the viewer belongs to, alphabetical."""
    with get_session(engine) as session:
        my_sections = select(SectionMember.section_id).where(SectionMember.user_id == viewer_id)
        if mine:
            stmt = select(Section).where(Section.id.in_(
                my_sections.where(SectionMember.status == MembershipStatus.APPROVED.value)
            ))
        elif viewer_id:
            stmt = select(Section).where(Section.is_public.is_(True) | Section.id.in_(my_sections))
        else:
            stmt = select(Section).where(Section.is_public.is_(True))
        term = (search or "").strip().lower()
        if term:
            stmt = stmt.where(
                func.lower(Section.name).contains(term, autoescape=True)
                | func.lower(func.coalesce(Section.description, "")).contains(term, autoescape=True)
            )
        sections = session.scalars(stmt.order_by(func.lower(Section.name), Section.id)).all()
        return [_section_dict(session, s, viewer_id) for s in sections]


def update_section(engine: Engine, section_id: int, actor_id: str, **fields) -> dict | None:
    updates = {k: v for k, v in fields.items() if k in ALLOWED_SECTION_FIELDS}
    with get_session(engine) as session:
        section = _load_admin(session, section_id, actor_id)
        if section is None:
            return None
        old_image = section.image_url
        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise ValueError("Section name is required")
            clash = session.scalar(
                select(Section.id).where(
                    Section.creator_id == section.creator_id,
                    Section.name == name,
                    Section.id != section_id,
                )
            )
            if clash is not None:
                raise ValueError(f"A section named '{name}' already exists")
            if name != section.name:
                for channel in _section_channels(session, section_id):
                    if channel.name == f"{section.name} Chat"[:_MAX_NAME]:
                        channel.name = f"{name} Chat"[:_MAX_NAME]
            updates["name"] = name
        for key, value in updates.items():
            setattr(section, key, value)
        session.flush()
        result = _section_dict(session, section, actor_id)
    upload_service.release_replaced(old_image, result["image_url"])
    return result


def delete_section(engine: Engine, section_id: int, actor_id: str) -> bool:
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None:
            return False
        if section.creator_id != actor_id:
            raise PermissionError("Only the section creator can delete it")
        image = section.image_url
        for channel in _section_channels(session, section_id):
            session.delete(channel)
        session.delete(section)
        logger.info("User %s deleted section %s", actor_id, section_id)
    upload_service.release_replaced(image)
    return True


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------
def join_section(engine: Engine, section_id: int, user_id: str) -> dict | None:
    """Request to join.  Returns ``{"status": ...}``."""
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not can_view(session, section, user_id):
            return None
        invitation = _pending_invitation(session, section_id, user_id)
        if not section.is_public and invitation is None and member_row(session, section_id, user_id) is None:
            raise PermissionError("This section is invite-only")

        member = member_row(session, section_id, user_id)
        if member is not None and member.status in (MembershipStatus.APPROVED, MembershipStatus.PENDING):
            return {"section_id": section_id, "status": member.status}

        if member is None:
            member = SectionMember(section_id=section_id, user_id=user_id, is_admin=False)
            session.add(member)
            rejoining = False
        else:
            rejoining = True
        member.status = MembershipStatus.PENDING.value
        member.approved_at = None
        member.approved_by = None
        session.flush()

        if invitation is not None:
            invitation.status = InvitationStatus.ACCEPTED.value
            invitation.responded_at = utcnow()
            _approve(session, section, member, invitation.invited_by)
        elif not section.requires_approval and not rejoining:
            _approve(session, section, member, None)
        logger.info("User %s joined section %s → %s", user_id, section_id, member.status)
        return {"section_id": section_id, "status": member.status}


def list_pending(engine: Engine, section_id: int, actor_id: str) -> list[dict] | None:
    with get_session(engine) as session:
        if _load_admin(session, section_id, actor_id) is None:
            return None
        rows = session.scalars(
            select(SectionMember)
            .where(SectionMember.section_id == section_id,
                   SectionMember.status == MembershipStatus.PENDING.value)
            .order_by(SectionMember.joined_at, SectionMember.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        return [
            {"user_id": r.user_id, "user": people.get(r.user_id),
             "joined_at": row_to_dict(r)["joined_at"]}
            for r in rows
        ]


def approve_member(engine: Engine, section_id: int, actor_id: str, user_id: str) -> dict | None:
    with get_session(engine) as session:
        section = _load_admin(session, section_id, actor_id)
        if section is None:
            return None
        member = member_row(session, section_id, user_id)
        if member is None:
            return None
        if member.status != MembershipStatus.APPROVED:
            _approve(session, section, member, actor_id)
            logger.info("User %s approved %s in section %s", actor_id, user_id, section_id)
        return {"section_id": section_id, "user_id": user_id, "status": member.status}


def reject_member(engine: Engine, section_id: int, actor_id: str, user_id: str) -> dict | None:
    """Reject a pending request."""
    with get_session(engine) as session:
        section = _load_admin(session, section_id, actor_id)
        if section is None:
            return None
        member = member_row(session, section_id, user_id)
        if member is None:
            return None
        if member.status != MembershipStatus.PENDING:
            raise ValueError("Only pending requests can be rejected")
        member.status = MembershipStatus.REJECTED.value
        logger.info("User %s rejected %s in section %s", actor_id, user_id, section_id)
        return {"section_id": section_id, "user_id": user_id, "status": member.status}


def remove_member(engine: Engine, section_id: int, actor_id: str, user_id: str) -> bool:
    with get_session(engine) as session:
        section = _load_admin(session, section_id, actor_id)
        if section is None or member_row(session, section_id, user_id) is None:
            return False
        if user_id == section.creator_id:
            raise ValueError("The section creator cannot be removed")
        _drop_member(session, section_id, user_id)
        logger.info("User %s removed %s from section %s", actor_id, user_id, section_id)
        return True


def set_admin(
    engine: Engine, section_id: int, actor_id: str, user_id: str, make_admin: bool,
) -> dict | None:
    with get_session(engine) as session:
        section = _load_admin(session, section_id, actor_id)
        if section is None:
            return None
        member = member_row(session, section_id, user_id)
        if member is None or member.status != MembershipStatus.APPROVED:
            raise ValueError("Only approved members can be made admins")
        if user_id == section.creator_id and not make_admin:
            raise ValueError("The section creator is always an admin")
        member.is_admin = make_admin
        for channel in _section_channels(session, section_id):
            cm = channel_service.membership(session, channel.id, user_id)
            if cm is not None and cm.role != ChannelRole.OWNER:
                cm.role = (ChannelRole.ADMIN if make_admin else ChannelRole.MEMBER).value
        session.flush()
        return {"section_id": section_id, "user_id": user_id, "is_admin": member.is_admin}


def leave_section(engine: Engine, section_id: int, user_id: str) -> bool:
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or member_row(session, section_id, user_id) is None:
            return False
        if section.creator_id == user_id:
            raise ValueError("The section creator cannot leave; delete the section instead")
        _drop_member(session, section_id, user_id)
        logger.info("User %s left section %s", user_id, section_id)
        return True


def set_visibility(engine: Engine, section_id: int, user_id: str, show: bool) -> bool:
    with get_session(engine) as session:
        if not is_approved(session, section_id, user_id):
            return False
        row = session.scalar(
            select(SectionMembershipVisibility).where(
                SectionMembershipVisibility.section_id == section_id,
                SectionMembershipVisibility.user_id == user_id,
            )
        )
        if row is None:
            row = SectionMembershipVisibility(section_id=section_id, user_id=user_id)
            session.add(row)
        row.show_membership = show
        return True


def list_members(engine: Engine, section_id: int, viewer_id: str | None) -> list[dict] | None:
    """Approved members with their section answers keyed by field_name.

    Members who hid their membership only appear to themselves and admins.
    """
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not can_view(session, section, viewer_id):
            return None
        viewer_is_admin = is_admin(session, section_id, viewer_id)

        members = session.scalars(
            select(SectionMember)
            .where(SectionMember.section_id == section_id,
                   SectionMember.status == MembershipStatus.APPROVED.value)
            .order_by(SectionMember.approved_at, SectionMember.id)
        ).all()
        hidden = set(session.scalars(
            select(SectionMembershipVisibility.user_id).where(
                SectionMembershipVisibility.section_id == section_id,
                SectionMembershipVisibility.show_membership.is_(False),
            )
        ).all())
        members = [
            m for m in members
            if m.user_id not in hidden or viewer_is_admin or m.user_id == viewer_id
        ]

        answers: dict[str, dict[str, str | None]] = {m.user_id: {} for m in members}
        if members:
            rows = session.execute(
                select(SectionProfileData.user_id, SectionProfileField.field_name,
                       SectionProfileData.value)
                .join(SectionProfileField, SectionProfileField.id == SectionProfileData.field_id)
                .where(
                    SectionProfileData.section_id == section_id,
                    SectionProfileField.is_active.is_(True),
                    SectionProfileData.user_id.in_(list(answers)),
                )
            ).all()
            for uid, field_name, value in rows:
                answers[uid][field_name] = value

        people = {
            p.id: p for p in session.scalars(
                select(Profile).where(Profile.id.in_([m.user_id for m in members]))
            ).all()
        }
        result = []
        for m in members:
            profile = people.get(m.user_id)
            result.append({
                "user_id": m.user_id,
                "full_name": profile.full_name if profile else "User",
                "profile_picture_url": profile.profile_picture_url if profile else None,
                "bio": profile.bio if profile else None,
                "is_admin": m.is_admin,
                "is_hidden": m.user_id in hidden,
                "section_data": answers.get(m.user_id, {}),
            })
        return result


def list_user_sections(engine: Engine, user_id: str, viewer_id: str | None = None) -> list[dict]:
    """Sections a member belongs to, as shown on their profile."""
    with get_session(engine) as session:
        stmt = (
            select(Section)
            .join(SectionMember, SectionMember.section_id == Section.id)
            .where(SectionMember.user_id == user_id,
                   SectionMember.status == MembershipStatus.APPROVED.value)
            .order_by(func.lower(Section.name))
        )
        if viewer_id != user_id:
            hidden = select(SectionMembershipVisibility.section_id).where(
                SectionMembershipVisibility.user_id == user_id,
                SectionMembershipVisibility.show_membership.is_(False),
            )
            stmt = stmt.where(Section.id.not_in(hidden))
        return [
            {"id": s.id, "name": s.name, "image_url": s.image_url}
            for s in session.scalars(stmt).all()
            if viewer_id == user_id or can_view(session, s, viewer_id)
        ]


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------
def _invitation_dict(session, inv: SectionInvitation) -> dict:
    data = row_to_dict(inv)
    section = session.get(Section, inv.section_id)
    data["section_name"] = section.name if section else None
    return data


def invite_to_section(
    engine: Engine,
    section_id: int,
    actor_id: str,
    user_id: str,
    message: str | None = None,
) -> dict | None:
    with get_session(engine) as session:
        if _load_admin(session, section_id, actor_id) is None:
            return None
        if session.get(Profile, user_id) is None:
            raise ValueError("User not found")
        if is_approved(session, section_id, user_id):
            raise ValueError("User is already a member")
        if _pending_invitation(session, section_id, user_id) is not None:
            raise ValueError("User already has a pending invitation")
        inv = SectionInvitation(
            section_id=section_id, user_id=user_id, invited_by=actor_id,
            status=InvitationStatus.PENDING.value, message=message,
        )
        session.add(inv)
        session.flush()
        session.refresh(inv)
        logger.info("User %s invited %s to section %s", actor_id, user_id, section_id)
        return _invitation_dict(session, inv)


def list_my_invitations(engine: Engine, user_id: str) -> list[dict]:
    with get_session(engine) as session:
        rows = session.scalars(
            select(SectionInvitation)
            .where(SectionInvitation.user_id == user_id,
                   SectionInvitation.status == InvitationStatus.PENDING.value)
            .order_by(SectionInvitation.invited_at.desc(), SectionInvitation.id.desc())
        ).all()
        return [_invitation_dict(session, r) for r in rows]


def respond_to_invitation(
    engine: Engine, invitation_id: int, user_id: str, accept: bool,
) -> dict | None:
    """Accept (joins as approved) or decline a pending invitation."""
    with get_session(engine) as session:
        inv = session.get(SectionInvitation, invitation_id)
        if inv is None or inv.user_id != user_id:
            return None
        if inv.status != InvitationStatus.PENDING:
            raise ValueError("This invitation has already been answered")
        inv.status = (InvitationStatus.ACCEPTED if accept else InvitationStatus.DECLINED).value
        inv.responded_at = utcnow()
        if accept:
            section = session.get(Section, inv.section_id)
            member = member_row(session, inv.section_id, user_id)
            if member is None:
                member = SectionMember(section_id=inv.section_id, user_id=user_id, is_admin=False)
                session.add(member)
                session.flush()
            if member.status != MembershipStatus.APPROVED:
                _approve(session, section, member, inv.invited_by)
        session.flush()
        logger.info("User %s %s invitation %s", user_id, inv.status, invitation_id)
        return _invitation_dict(session, inv)
