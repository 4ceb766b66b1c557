"""
tomorrow_people.services.rsvp_service — RSVP & Waitlist Transitions
====================================================================

All attendance state changes for an event happen here, inside a single
transaction each:

* **Toggle RSVP** — choosing the status you already hold removes it.
* **Capacity** — a ``going`` RSVP beyond ``max_capacity`` joins the waitlist
  when the event has one, otherwise it is refused.
* **Waitlist** — positions are contiguous ``1..n``; leaving shifts every
  later entry down by one.  Any RSVP answer other than a queued ``going``
  takes the user off the waitlist.  When a seat frees up and the event has
  ``auto_confirm_waitlist`` set, the head of the queue is promoted.
* **Counters** — ``rsvp_count``/``maybe_count``/``not_going_count``/
  ``waitlist_count`` on the event row are recomputed from the rows after
  every change, so they always match.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from tomorrow_people.constants import utcnow
from tomorrow_people.database.engine import get_session
from tomorrow_people.database.models import (
    Event,
    EventInvitation,
    EventRsvp,
    EventWaitlistEntry,
    GuestListVisibility,
    RsvpStatus,
)
from tomorrow_people.engine.event_status import rsvp_closed_reason
from tomorrow_people.services import event_access
from tomorrow_people.services.serializers import author_summaries

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers (operate on an open session)
# ---------------------------------------------------------------------------
def recount(session: Session, event: Event) -> None:
    """Set the event's counters from the RSVP and waitlist rows."""
    session.flush()
    rows = session.execute(
        select(EventRsvp.status, func.count())
        .where(EventRsvp.event_id == event.id)
        .group_by(EventRsvp.status)
    ).all()
    counts = {status: n for status, n in rows}
    event.rsvp_count = counts.get(RsvpStatus.GOING.value, 0)
    event.maybe_count = counts.get(RsvpStatus.MAYBE.value, 0)
    event.not_going_count = counts.get(RsvpStatus.NOT_GOING.value, 0)
    event.waitlist_count = session.scalar(
        select(func.count()).select_from(EventWaitlistEntry)
        .where(EventWaitlistEntry.event_id == event.id)
    ) or 0


def _going_count(session: Session, event_id: int) -> int:
    session.flush()
    return session.scalar(
        select(func.count()).select_from(EventRsvp).where(
            EventRsvp.event_id == event_id, EventRsvp.status == RsvpStatus.GOING.value,
        )
    ) or 0


def _has_capacity(session: Session, event: Event) -> bool:
    if not event.max_capacity:
        return True
    return _going_count(session, event.id) < event.max_capacity


def _waitlist_entry(session: Session, event_id: int, user_id: str) -> EventWaitlistEntry | None:
    return session.scalar(
        select(EventWaitlistEntry).where(
            EventWaitlistEntry.event_id == event_id,
            EventWaitlistEntry.user_id == user_id,
        )
    )


def _waitlist_total(session: Session, event_id: int) -> int:
    return session.scalar(
        select(func.count()).select_from(EventWaitlistEntry)
        .where(EventWaitlistEntry.event_id == event_id)
    ) or 0


def _enqueue(session: Session, event_id: int, user_id: str) -> tuple[int, int]:
    """Append *user_id* to the waitlist (no-op when already queued)."""
    entry = _waitlist_entry(session, event_id, user_id)
    if entry is None:
        last = session.scalar(
            select(func.max(EventWaitlistEntry.position))
            .where(EventWaitlistEntry.event_id == event_id)
        ) or 0
        entry = EventWaitlistEntry(event_id=event_id, user_id=user_id, position=last + 1)
        session.add(entry)
        session.flush()
        logger.info("User %s joined waitlist for event %s at #%d", user_id, event_id, entry.position)
    return entry.position, _waitlist_total(session, event_id)


def _dequeue(session: Session, entry: EventWaitlistEntry) -> None:
    """Remove *entry* and close the gap it leaves."""
    event_id, position = entry.event_id, entry.position
    session.delete(entry)
    session.flush()
    session.execute(
        update(EventWaitlistEntry)
        .where(
            EventWaitlistEntry.event_id == event_id,
            EventWaitlistEntry.position > position,
        )
        .values(position=EventWaitlistEntry.position - 1)
        .execution_options(synchronize_session="fetch")
    )


def _set_going(session: Session, event_id: int, user_id: str) -> None:
    row = session.scalar(
        select(EventRsvp).where(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id)
    )
    if row is None:
        session.add(EventRsvp(event_id=event_id, user_id=user_id, status=RsvpStatus.GOING.value))
    else:
        row.status = RsvpStatus.GOING.value


def _accept_invitation(session: Session, event_id: int, user_id: str, now: datetime) -> None:
    invitation = session.scalar(
        select(EventInvitation).where(
            EventInvitation.event_id == event_id,
            EventInvitation.user_id == user_id,
            EventInvitation.accepted_at.is_(None),
        )
    )
    if invitation is not None:
        invitation.accepted_at = now


def promote_waitlist(session: Session, event: Event) -> list[str]:
    """Fill free seats from the head of the waitlist.  Returns promoted user ids."""
    promoted: list[str] = []
    while _has_capacity(session, event):
        head = session.scalar(
            select(EventWaitlistEntry)
            .where(EventWaitlistEntry.event_id == event.id)
            .order_by(EventWaitlistEntry.position)
            .limit(1)
        )
        if head is None:
            break
        user_id = head.user_id
        _set_going(session, event.id, user_id)
        _dequeue(session, head)
        promoted.append(user_id)
        logger.info("Promoted user %s from waitlist for event %s", user_id, event.id)
    return promoted


def _summary(session: Session, event: Event, user_id: str) -> dict:
    entry = _waitlist_entry(session, event.id, user_id)
    return {
        "event_id": event.id,
        "status": event_access.rsvp_status_of(session, event.id, user_id),
        "waitlisted": entry is not None,
        "waitlist_position": entry.position if entry else None,
        "rsvp_count": event.rsvp_count,
        "maybe_count": event.maybe_count,
        "not_going_count": event.not_going_count,
        "waitlist_count": event.waitlist_count,
    }


# ---------------------------------------------------------------------------
# RSVP
# ---------------------------------------------------------------------------
def rsvp(
    engine: Engine,
    event_id: int,
    user_id: str,
    status: str,
    *,
    now: datetime | None = None,
) -> dict | None:
    """Record, change, or (by repeating the same choice) clear an RSVP.

    Returns a summary dict with the caller's resulting status, waitlist
    position and the event's counters, or ``None`` when the event does not
    exist or is hidden from *user_id*.

    Raises
    ------
    ValueError
        Unknown status, RSVPs closed, or the event is full without a waitlist.
    """
    try:
        status = RsvpStatus(status).value
    except ValueError:
        raise ValueError(f"Invalid RSVP status '{status}'") from None
    now = now or utcnow()

    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, user_id):
            return None

        reason = rsvp_closed_reason(event.status, event.rsvp_deadline, now)
        if reason:
            raise ValueError(reason)

        existing = session.scalar(
            select(EventRsvp).where(EventRsvp.event_id == event_id, EventRsvp.user_id == user_id)
        )
        previous = existing.status if existing else None
        released_seat = False

        queued = _waitlist_entry(session, event_id, user_id)

        if previous == status:
            session.delete(existing)
            released_seat = previous == RsvpStatus.GOING
            if queued is not None:
                _dequeue(session, queued)
            logger.info("User %s withdrew %s RSVP for event %s", user_id, previous, event_id)
        elif status == RsvpStatus.GOING and not _has_capacity(session, event):
            if not event.waitlist_enabled:
                raise ValueError("This event is at capacity")
            _enqueue(session, event_id, user_id)
        else:
            if existing is None:
                session.add(EventRsvp(event_id=event_id, user_id=user_id, status=status))
            else:
                existing.status = status
            released_seat = previous == RsvpStatus.GOING
            # any answer other than a queued "going" gives up the waitlist spot
            if queued is not None:
                _dequeue(session, queued)
            logger.info("User %s RSVP'd %s to event %s", user_id, status, event_id)

        if status in (RsvpStatus.GOING, RsvpStatus.MAYBE) and previous != status:
            _accept_invitation(session, event_id, user_id, now)

        if released_seat and event.auto_confirm_waitlist:
            promote_waitlist(session, event)

        recount(session, event)
        return _summary(session, event, user_id)


def get_my_rsvp(engine: Engine, event_id: int, user_id: str) -> dict | None:
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, user_id):
            return None
        return _summary(session, event, user_id)


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------
def join_waitlist(engine: Engine, event_id: int, user_id: str) -> tuple[int, int] | None:
    """Queue *user_id* for a seat.  Returns ``(position, total)``.

    Joining again keeps the existing position.
    """
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, user_id):
            return None
        if not event.waitlist_enabled:
            raise ValueError("This event does not have a waitlist")
        if event_access.rsvp_status_of(session, event_id, user_id) == RsvpStatus.GOING:
            raise ValueError("You are already going to this event")
        result = _enqueue(session, event_id, user_id)
        recount(session, event)
        return result


def leave_waitlist(engine: Engine, event_id: int, user_id: str) -> bool:
    """Drop *user_id* from the waitlist.  Returns False when not queued."""
    with get_session(engine) as session:
        entry = _waitlist_entry(session, event_id, user_id)
        if entry is None:
            return False
        _dequeue(session, entry)
        event = session.get(Event, event_id)
        recount(session, event)
        logger.info("User %s left waitlist for event %s", user_id, event_id)
        return True


def confirm_from_waitlist(
    engine: Engine,
    event_id: int,
    user_id: str,
    *,
    actor_id: str | None = None,
) -> bool:
    """Give a waitlisted user a ``going`` RSVP regardless of capacity.

    When *actor_id* is given it must be an event manager.  Returns False
    when the user is not on the waitlist.
    """
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return False
        if actor_id is not None and not event_access.is_manager(session, event, actor_id):
            raise PermissionError("Only hosts can confirm waitlisted guests")
        entry = _waitlist_entry(session, event_id, user_id)
        if entry is None:
            return False
        _set_going(session, event_id, user_id)
        _dequeue(session, entry)
        recount(session, event)
        logger.info("Confirmed user %s from waitlist for event %s", user_id, event_id)
        return True


def get_waitlist(engine: Engine, event_id: int, viewer_id: str) -> list[dict] | None:
    """Ordered waitlist with member names (managers only)."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        if not event_access.is_manager(session, event, viewer_id):
            raise PermissionError("Only hosts can view the waitlist")
        entries = session.scalars(
            select(EventWaitlistEntry)
            .where(EventWaitlistEntry.event_id == event_id)
            .order_by(EventWaitlistEntry.position)
        ).all()
        people = author_summaries(session, [e.user_id for e in entries])
        return [
            {
                "user_id": e.user_id,
                "position": e.position,
                "user": people.get(e.user_id),
                "joined_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in entries
        ]


# ---------------------------------------------------------------------------
# Counter repair
# ---------------------------------------------------------------------------
def recalculate_counts(engine: Engine, event_id: int | None = None) -> int:
    """Recompute counters from rows for one event or all events.

    Returns the number of events whose counters changed.
    """
    changed = 0
    with get_session(engine) as session:
        stmt = select(Event)
        if event_id is not None:
            stmt = stmt.where(Event.id == event_id)
        for event in session.scalars(stmt).all():
            before = (event.rsvp_count, event.maybe_count, event.not_going_count, event.waitlist_count)
            recount(session, event)
            after = (event.rsvp_count, event.maybe_count, event.not_going_count, event.waitlist_count)
            if before != after:
                changed += 1
    if changed:
        logger.info("Repaired RSVP counters on %d event(s)", changed)
    return changed


# ---------------------------------------------------------------------------
# Guest list
# ---------------------------------------------------------------------------
def get_guest_list(engine: Engine, event_id: int, viewer_id: str | None) -> dict | None:
    """Going and maybe guests, subject to the event's guest list visibility.

    ``public`` shows everyone the list, ``rsvp_only`` shows it to managers
    and guests who are going or maybe, ``hidden`` to managers only.
    Counts are always included.
    """
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None or not event_access.can_view(session, event, viewer_id):
            return None

        visibility = event.guest_list_visibility
        if visibility == GuestListVisibility.PUBLIC:
            visible = True
        elif visibility == GuestListVisibility.HIDDEN:
            visible = event_access.is_manager(session, event, viewer_id)
        else:
            visible = event_access.is_attending(session, event, viewer_id)

        result: dict = {
            "visible": visible,
            "visibility": visibility,
            "going_count": event.rsvp_count,
            "maybe_count": event.maybe_count,
            "going": [],
            "maybe": [],
        }
        if not visible:
            return result

        rows = session.scalars(
            select(EventRsvp)
            .where(
                EventRsvp.event_id == event_id,
                EventRsvp.status.in_([RsvpStatus.GOING.value, RsvpStatus.MAYBE.value]),
            )
            .order_by(EventRsvp.created_at, EventRsvp.id)
        ).all()
        people = author_summaries(session, [r.user_id for r in rows])
        for row in rows:
            person = people.get(row.user_id, {"id": row.user_id, "full_name": "User",
                                              "profile_picture_url": None})
            result[row.status].append(person)
        return result
