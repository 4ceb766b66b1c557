"""
tomorrow_people.services.event_access — Who may see and manage an event
========================================================================

Shared by :mod:`event_service` and :mod:`rsvp_service`.

* **Managers** are the creator and any co-host.
* Unpublished (draft) events are visible to managers only.
* Private events are visible to managers, invitees and anyone who already
  holds an RSVP.  Approved members of an invited section count as invitees.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from tomorrow_people.database.models import (
    Event,
    EventCohost,
    EventInvitation,
    EventRsvp,
    EventSectionInvite,
    MembershipStatus,
    RsvpStatus,
    SectionMember,
)


def is_cohost(session: Session, event_id: int, user_id: str | None) -> bool:
    if not user_id:
        return False
    return session.scalar(
        select(EventCohost.id).where(
            EventCohost.event_id == event_id, EventCohost.user_id == user_id,
        )
    ) is not None


def is_manager(session: Session, event: Event, user_id: str | None) -> bool:
    if not user_id:
        return False
    return event.created_by == user_id or is_cohost(session, event.id, user_id)


def rsvp_status_of(session: Session, event_id: int, user_id: str | None) -> str | None:
    if not user_id:
        return None
    return session.scalar(
        select(EventRsvp.status).where(
            EventRsvp.event_id == event_id, EventRsvp.user_id == user_id,
        )
    )


def invited_via_section(user_id: str):
    """Select the ids of events *user_id* is invited to through a section."""
    return (
        select(EventSectionInvite.event_id)
        .join(SectionMember, SectionMember.section_id == EventSectionInvite.section_id)
        .where(
            SectionMember.user_id == user_id,
            SectionMember.status == MembershipStatus.APPROVED.value,
        )
    )


def is_invited(session: Session, event_id: int, user_id: str | None) -> bool:
    if not user_id:
        return False
    direct = session.scalar(
        select(EventInvitation.id).where(
            EventInvitation.event_id == event_id, EventInvitation.user_id == user_id,
        )
    )
    if direct is not None:
        return True
    return session.scalar(
        invited_via_section(user_id).where(EventSectionInvite.event_id == event_id).limit(1)
    ) is not None


def can_view(session: Session, event: Event, user_id: str | None) -> bool:
    if is_manager(session, event, user_id):
        return True
    if not event.published:
        return False
    if not event.is_private:
        return True
    return (
        is_invited(session, event.id, user_id)
        or rsvp_status_of(session, event.id, user_id) is not None
    )


def is_attending(session: Session, event: Event, user_id: str | None) -> bool:
    """Managers, plus users with a going or maybe RSVP."""
    if is_manager(session, event, user_id):
        return True
    return rsvp_status_of(session, event.id, user_id) in (RsvpStatus.GOING, RsvpStatus.MAYBE)
