"""
tomorrow_people.services.event_service — Events, Co-hosts, Comments, Invites
=============================================================================

CRUD for event listings plus the pieces hosts manage around them,
including whole sections invited at once.
Attendance (RSVP, waitlist, guest list) lives in :mod:`rsvp_service`.

Permission model (see :mod:`event_access`):
* create — any member
* update / set status / invite / manage comments — creator or co-host
* delete / manage co-hosts / invite sections — creator only
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, delete, or_, select

from tomorrow_people.constants import ALLOWED_EVENT_FIELDS, as_utc, utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Channel,
    CohostRole,
    Event,
    EventCohost,
    EventComment,
    EventInvitation,
    EventRsvp,
    EventSectionInvite,
    EventStatus,
    GuestListVisibility,
    MembershipStatus,
    Profile,
    Section,
    SectionMember,
)
from tomorrow_people.engine.event_status import AUTO_STATUSES, MANUAL_STATUSES, compute_status
from tomorrow_people.services import event_access, rsvp_service, section_service, upload_service
from tomorrow_people.services.serializers import author_summaries, row_to_dict

logger = logging.getLogger(__name__)

EVENT_LIST_FILTERS = ("upcoming", "past", "all")
_MAX_GROUP_NAME = 100


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _clean_tags(tags) -> list[str]:
    cleaned: list[str] = []
    for tag in tags or []:
        tag = str(tag).strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


def _clean_group(name) -> str | None:
    """Trim a group name; blank means the event is not part of a group."""
    name = (name or "").strip()
    if len(name) > _MAX_GROUP_NAME:
        raise ValueError(f"Group name must be at most {_MAX_GROUP_NAME} characters")
    return name or None


def _validate(values: dict) -> None:
    """Check a full set of event values (after applying an update)."""
    title = (values.get("title") or "").strip()
    if not title:
        raise ValueError("Title is required")
    starts_at = as_utc(values.get("starts_at"))
    if starts_at is None:
        raise ValueError("Start time is required")
    ends_at = as_utc(values.get("ends_at"))
    if ends_at is not None and ends_at <= starts_at:
        raise ValueError("End time must be after the start time")
    deadline = as_utc(values.get("rsvp_deadline"))
    if deadline is not None and deadline > starts_at:
        raise ValueError("RSVP deadline must be before the event starts")
    capacity = values.get("max_capacity")
    if capacity is not None and capacity < 1:
        raise ValueError("Capacity must be at least 1")
    visibility = values.get("guest_list_visibility")
    if visibility is not None and visibility not in set(GuestListVisibility):
        raise ValueError(f"Invalid guest list visibility '{visibility}'")


def event_dict(session, event: Event, viewer_id: str | None = None) -> dict:
    data = row_to_dict(event)
    data["tags"] = list(event.tags or [])
    host = author_summaries(session, [event.created_by]).get(event.created_by)
    data["host"] = host
    if viewer_id:
        data["is_host"] = event.created_by == viewer_id
        data["is_cohost"] = event_access.is_cohost(session, event.id, viewer_id)
        data["my_rsvp"] = event_access.rsvp_status_of(session, event.id, viewer_id)
    return data


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def create_event(
    engine: Engine,
    creator_id: str,
    *,
    title: str,
    starts_at: datetime,
    **fields,
) -> dict:
    """Create an event.  Published events start ``scheduled``, drafts ``draft``."""
    values = {k: v for k, v in fields.items() if k in ALLOWED_EVENT_FIELDS}
    values["title"] = title
    values["starts_at"] = starts_at
    _validate(values)
    values["title"] = title.strip()
    values["tags"] = _clean_tags(values.get("tags"))
    values["group_name"] = _clean_group(values.get("group_name"))
    published = values.get("published", True)
    values["published"] = published

    with get_session(engine) as session:
        event = Event(
            created_by=creator_id,
            status=(EventStatus.SCHEDULED if published else EventStatus.DRAFT).value,
            status_updated_at=utcnow(),
            status_updated_by=creator_id,
            rsvp_count=0,
            maybe_count=0,
            not_going_count=0,
            waitlist_count=0,
            **values,
        )
        session.add(event)
        session.flush()
        session.refresh(event)
        logger.info("User %s created event %s (%s)", creator_id, event.id, event.title)
        return event_dict(session, event, creator_id)


def get_event(engine: Engine, event_id: int, viewer_id: str | None = None) -> dict | None:
    """Return the event, or None when missing or hidden from *viewer_id*."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, viewer_id):
            return None
        return event_dict(session, event, viewer_id)


def update_event(engine: Engine, event_id: int, user_id: str, **fields) -> dict | None:
    """Apply host edits.  Raising capacity promotes waitlisted guests when
    the event auto-confirms."""
    updates = {k: v for k, v in fields.items() if k in ALLOWED_EVENT_FIELDS}

    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, user_id):
            raise PermissionError("Only the host or co-hosts can edit this event")

        old_image = event.image_url
        merged = {key: getattr(event, key) for key in ALLOWED_EVENT_FIELDS}
        merged.update(updates)
        _validate(merged)

        if "tags" in updates:
            updates["tags"] = _clean_tags(updates["tags"])
        if "group_name" in updates:
            updates["group_name"] = _clean_group(updates["group_name"])
        if "title" in updates:
            updates["title"] = updates["title"].strip()
        for key, value in updates.items():
            setattr(event, key, value)

        if "published" in updates:
            if updates["published"] and event.status == EventStatus.DRAFT:
                event.status = EventStatus.SCHEDULED.value
            elif not updates["published"] and event.status in AUTO_STATUSES | {EventStatus.PENDING}:
                event.status = EventStatus.DRAFT.value
            event.status_updated_at = utcnow()
            event.status_updated_by = user_id

        if event.auto_confirm_waitlist:
            rsvp_service.promote_waitlist(session, event)
        rsvp_service.recount(session, event)
        session.flush()
        session.refresh(event)
        result = event_dict(session, event, user_id)
    upload_service.release_replaced(old_image, result["image_url"])
    return result


def delete_event(engine: Engine, event_id: int, user_id: str) -> bool:
    """Delete an event and everything attached to it (creator only)."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return False
        if event.created_by != user_id:
            raise PermissionError("Only the event creator can delete it")
        image = event.image_url
        for channel in session.scalars(select(Channel).where(Channel.event_id == event_id)).all():
            session.delete(channel)
        session.delete(event)
        logger.info("User %s deleted event %s", user_id, event_id)
    upload_service.release_replaced(image)
    return True


def list_events(
    engine: Engine,
    viewer_id: str | None = None,
    filter: str = "upcoming",
    *,
    now: datetime | None = None,
) -> list[dict]:
    """List events the viewer may see.

    *filter* is ``upcoming`` (soonest first), ``past`` (most recent first),
    ``all``, or any other string, treated as a tag.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        visible = [
            Event.published.is_(True) & Event.is_private.is_(False),
        ]
        if viewer_id:
            visible.append(Event.created_by == viewer_id)
            visible.append(Event.id.in_(
                select(EventCohost.event_id).where(EventCohost.user_id == viewer_id)
            ))
            visible.append(Event.published.is_(True) & Event.id.in_(
                select(EventInvitation.event_id).where(EventInvitation.user_id == viewer_id)
            ))
            visible.append(Event.published.is_(True) & Event.id.in_(
                event_access.invited_via_section(viewer_id)
            ))
            visible.append(Event.published.is_(True) & Event.id.in_(
                select(EventRsvp.event_id).where(EventRsvp.user_id == viewer_id)
            ))
        stmt = select(Event).where(or_(*visible))

        if filter == "upcoming":
            stmt = stmt.where(Event.starts_at >= now).order_by(Event.starts_at.asc(), Event.id)
        elif filter == "past":
            stmt = stmt.where(Event.starts_at < now).order_by(Event.starts_at.desc(), Event.id)
        else:
            stmt = stmt.order_by(Event.starts_at.asc(), Event.id)

        events = session.scalars(stmt).all()
        if filter not in EVENT_LIST_FILTERS:
            tag = filter.strip().lower()
            events = [e for e in events if tag in (e.tags or [])]
        return [event_dict(session, e, viewer_id) for e in events]


def list_hosted_events(engine: Engine, user_id: str) -> list[dict]:
    """Events the user created or co-hosts, newest first."""
    with get_session(engine) as session:
        events = session.scalars(
            select(Event)
            .where(or_(
                Event.created_by == user_id,
                Event.id.in_(select(EventCohost.event_id).where(EventCohost.user_id == user_id)),
            ))
            .order_by(Event.starts_at.desc(), Event.id)
        ).all()
        return [event_dict(session, e, user_id) for e in events]


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------
def set_event_status(engine: Engine, event_id: int, user_id: str, status: str) -> dict | None:
    """Manually set draft / scheduled / cancelled / postponed."""
    if status not in MANUAL_STATUSES:
        raise ValueError(
            f"Status '{status}' cannot be set manually. "
            f"Expected one of: {', '.join(sorted(MANUAL_STATUSES))}"
        )
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, user_id):
            raise PermissionError("Only the host or co-hosts can change the status")
        event.status = status
        event.published = status != EventStatus.DRAFT
        event.status_updated_at = utcnow()
        event.status_updated_by = user_id
        session.flush()
        logger.info("User %s set event %s status → %s", user_id, event_id, status)
        return event_dict(session, event, user_id)


def refresh_event_statuses(
    engine: Engine,
    now: datetime | None = None,
    completed_after_hours: int = 4,
) -> int:
    """Apply the automatic lifecycle transitions to every eligible event.

    Returns the number of events whose status changed.
    """
    now = now or utcnow()
    changed = 0
    with get_session(engine) as session:
        events = session.scalars(
            select(Event).where(Event.status.in_([s.value for s in AUTO_STATUSES]))
        ).all()
        for event in events:
            new_status = compute_status(
                status=event.status,
                published=event.published,
                starts_at=event.starts_at,
                ends_at=event.ends_at,
                rsvp_deadline=event.rsvp_deadline,
                now=now,
                completed_after_hours=completed_after_hours,
            )
            if new_status != event.status:
                logger.debug("Event %s: %s → %s", event.id, event.status, new_status)
                event.status = new_status
                event.status_updated_at = now
                event.status_updated_by = None
                changed += 1
    if changed:
        logger.info("Event status refresh updated %d event(s)", changed)
    return changed


# ---------------------------------------------------------------------------
# Co-hosts
# ---------------------------------------------------------------------------
def list_cohosts(engine: Engine, event_id: int, viewer_id: str | None) -> list[dict] | None:
    """Co-hosts of an event the viewer can see; None when missing or hidden."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, viewer_id):
            return None
        rows = session.scalars(
            select(EventCohost).where(EventCohost.event_id == event_id).order_by(EventCohost.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        return [
            {"user_id": r.user_id, "role": r.role, "user": people.get(r.user_id)}
            for r in rows
        ]


def add_cohost(
    engine: Engine,
    event_id: int,
    actor_id: str,
    user_id: str,
    role: str = CohostRole.COHOST.value,
) -> dict | None:
    if role not in set(CohostRole):
        raise ValueError(f"Invalid co-host role '{role}'")
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if event.created_by != actor_id:
            raise PermissionError("Only the event creator can manage co-hosts")
        if user_id == event.created_by:
            raise ValueError("The host cannot be added as a co-host")
        if session.get(Profile, user_id) is None:
            raise ValueError("User not found")

        row = session.scalar(
            select(EventCohost).where(EventCohost.event_id == event_id, EventCohost.user_id == user_id)
        )
        if row is None:
            row = EventCohost(event_id=event_id, user_id=user_id, added_by=actor_id, role=role)
            session.add(row)
        else:
            row.role = role
        session.flush()
        logger.info("User %s added co-host %s (%s) to event %s", actor_id, user_id, role, event_id)
        return {"user_id": row.user_id, "role": row.role}


def remove_cohost(engine: Engine, event_id: int, actor_id: str, user_id: str) -> bool:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return False
        if event.created_by != actor_id:
            raise PermissionError("Only the event creator can manage co-hosts")
        result = session.execute(
            delete(EventCohost).where(EventCohost.event_id == event_id, EventCohost.user_id == user_id)
        )
        return result.rowcount > 0


# ---------------------------------------------------------------------------
# Comments — host and guests (going / maybe) only
# ---------------------------------------------------------------------------
def _comment_dict(comment: EventComment, people: dict) -> dict:
    return {
        "id": comment.id,
        "event_id": comment.event_id,
        "user_id": comment.user_id,
        "user": people.get(comment.user_id),
        "content": comment.content,
        "created_at": as_utc(comment.created_at).isoformat() if comment.created_at else None,
    }


def list_comments(engine: Engine, event_id: int, viewer_id: str) -> list[dict] | None:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, viewer_id):
            return None
        if not event_access.is_attending(session, event, viewer_id):
            raise PermissionError("RSVP to join the discussion")
        comments = session.scalars(
            select(EventComment)
            .where(EventComment.event_id == event_id)
            .order_by(EventComment.created_at, EventComment.id)
        ).all()
        people = author_summaries(session, [c.user_id for c in comments])
        return [_comment_dict(c, people) for c in comments]


def add_comment(engine: Engine, event_id: int, user_id: str, content: str) -> dict | None:
    content = (content or "").strip()
    if not content:
        raise ValueError("Comment cannot be empty")
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, user_id):
            return None
        if not event_access.is_attending(session, event, user_id):
            raise PermissionError("RSVP to join the discussion")
        comment = EventComment(event_id=event_id, user_id=user_id, content=content)
        session.add(comment)
        session.flush()
        session.refresh(comment)
        return _comment_dict(comment, author_summaries(session, [user_id]))


def delete_comment(engine: Engine, comment_id: int, user_id: str) -> bool:
    """Authors delete their own comments; hosts may delete any."""
    with get_session(engine) as session:
        comment = session.get(EventComment, comment_id)
        if comment is None:
            return False
        event = session.get(Event, comment.event_id)
        if comment.user_id != user_id and not event_access.is_manager(session, event, user_id):
            raise PermissionError("You cannot delete this comment")
        session.delete(comment)
        return True


# ---------------------------------------------------------------------------
# Invitations (private events)
# ---------------------------------------------------------------------------
def invite_user(engine: Engine, event_id: int, actor_id: str, user_id: str) -> dict | None:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, actor_id):
            raise PermissionError("Only the host or co-hosts can invite guests")
        if session.get(Profile, user_id) is None:
            raise ValueError("User not found")
        invitation = session.scalar(
            select(EventInvitation).where(
                EventInvitation.event_id == event_id, EventInvitation.user_id == user_id,
            )
        )
        if invitation is None:
            invitation = EventInvitation(event_id=event_id, user_id=user_id, invited_by=actor_id)
            session.add(invitation)
            session.flush()
            logger.info("User %s invited %s to event %s", actor_id, user_id, event_id)
        return {
            "event_id": event_id,
            "user_id": user_id,
            "invited_by": invitation.invited_by,
            "accepted": invitation.accepted_at is not None,
        }


def list_invitations(engine: Engine, event_id: int, actor_id: str) -> list[dict] | None:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, actor_id):
            raise PermissionError("Only the host or co-hosts can view invitations")
        rows = session.scalars(
            select(EventInvitation)
            .where(EventInvitation.event_id == event_id)
            .order_by(EventInvitation.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        return [
            {
                "user_id": r.user_id,
                "user": people.get(r.user_id),
                "accepted": r.accepted_at is not None,
                "invited_by": r.invited_by,
            }
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Section invites — invite every approved member of a section at once
# ---------------------------------------------------------------------------
def _section_invite_dict(invite: EventSectionInvite, section: Section) -> dict:
    return {
        "event_id": invite.event_id,
        "section_id": section.id,
        "section_name": section.name,
        "image_url": section.image_url,
        "invited_by": invite.invited_by,
        "invited_at": as_utc(invite.invited_at).isoformat() if invite.invited_at else None,
    }


def invite_section(engine: Engine, event_id: int, actor_id: str, section_id: int) -> dict | None:
    """Invite a section to the event (creator only).  Inviting twice is a no-op."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if event.created_by != actor_id:
            raise PermissionError("Only the event creator can invite sections")
        section = session.get(Section, section_id)
        if section is None or not section_service.can_view(session, section, actor_id):
            raise ValueError("Section not found")
        invite = session.scalar(
            select(EventSectionInvite).where(
                EventSectionInvite.event_id == event_id,
                EventSectionInvite.section_id == section_id,
            )
        )
        if invite is None:
            invite = EventSectionInvite(event_id=event_id, section_id=section_id, invited_by=actor_id)
            session.add(invite)
            session.flush()
            session.refresh(invite)
            logger.info("User %s invited section %s to event %s", actor_id, section_id, event_id)
        return _section_invite_dict(invite, section)


def uninvite_section(engine: Engine, event_id: int, actor_id: str, section_id: int) -> bool:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return False
        if event.created_by != actor_id:
            raise PermissionError("Only the event creator can invite sections")
        result = session.execute(
            delete(EventSectionInvite).where(
                EventSectionInvite.event_id == event_id,
                EventSectionInvite.section_id == section_id,
            )
        )
        return result.rowcount > 0


def list_section_invites(engine: Engine, event_id: int, viewer_id: str | None) -> list[dict] | None:
    """Sections invited to an event the viewer can see."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, viewer_id):
            return None
        rows = session.execute(
            select(EventSectionInvite, Section)
            .join(Section, Section.id == EventSectionInvite.section_id)
            .where(EventSectionInvite.event_id == event_id)
            .order_by(Section.name, Section.id)
        ).all()
        return [_section_invite_dict(invite, section) for invite, section in rows]


def list_invited_members(engine: Engine, event_id: int, actor_id: str) -> list[dict] | None:
    """Everyone invited through a section, once each, by name (hosts only)."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, actor_id):
            raise PermissionError("Only the host or co-hosts can view invitations")
        rows = session.execute(
            select(
                Profile.id, Profile.full_name, Profile.profile_picture_url,
                Section.id.label("section_id"), Section.name.label("section_name"),
            )
            .join(SectionMember, SectionMember.user_id == Profile.id)
            .join(Section, Section.id == SectionMember.section_id)
            .join(EventSectionInvite, EventSectionInvite.section_id == Section.id)
            .where(
                EventSectionInvite.event_id == event_id,
                SectionMember.status == MembershipStatus.APPROVED.value,
            )
            .order_by(Profile.full_name, Profile.id, Section.name)
        ).all()
        members: dict[str, dict] = {}
        for row in rows:
            if row.id not in members:
                members[row.id] = {
                    "user_id": row.id,
                    "full_name": row.full_name,
                    "profile_picture_url": row.profile_picture_url,
                    "section_id": row.section_id,
                    "section_name": row.section_name,
                }
        return list(members.values())


def list_section_events(
    engine: Engine,
    section_id: int,
    viewer_id: str | None = None,
    filter: str = "upcoming",
    *,
    now: datetime | None = None,
) -> list[dict] | None:
    """Published events a section was invited to, as shown on the section page.

    *filter* is ``upcoming`` (soonest first) or ``past`` (most recent first).
    """
    if filter not in ("upcoming", "past"):
        raise ValueError("Expected filter 'upcoming' or 'past'")
    now = now or utcnow()
    with get_session(engine) as session:
        section = session.get(Section, section_id)
        if section is None or not section_service.can_view(session, section, viewer_id):
            return None
        stmt = select(Event).where(
            Event.published.is_(True),
            Event.id.in_(
                select(EventSectionInvite.event_id).where(EventSectionInvite.section_id == section_id)
            ),
        )
        if filter == "upcoming":
            stmt = stmt.where(Event.starts_at >= now).order_by(Event.starts_at.asc(), Event.id)
        else:
            stmt = stmt.where(Event.starts_at < now).order_by(Event.starts_at.desc(), Event.id)
        events = [e for e in session.scalars(stmt).all() if event_access.can_view(session, e, viewer_id)]
        return [event_dict(session, e, viewer_id) for e in events]
