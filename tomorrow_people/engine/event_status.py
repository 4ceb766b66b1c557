"""
tomorrow_people.engine.event_status — Event lifecycle transitions
==================================================================

Pure functions deciding an event's automatic status and whether it still
accepts RSVPs.  No database access here; :mod:`event_service` feeds in the
row values and writes back whatever changed.

Automatic transitions (applied in this order, each seeing the result of
the previous one):

1. ``scheduled``/``active`` → ``live`` once the start time has
   passed and the event has no end time or has not ended yet.
2. Those and ``live`` → ``completed`` once the end time has
   passed, or, without an end time, *completed_after_hours* after the start.
3. ``scheduled`` → ``active`` for published future events whose RSVP
   deadline is absent or still ahead.
4. ``scheduled``/``active`` → ``pending`` for published future events whose
   RSVP deadline has passed.

``draft``, ``cancelled`` and ``postponed`` are only ever changed by a host.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from tomorrow_people.constants import as_utc
from tomorrow_people.database.models import EventStatus

# Statuses a host may set by hand
MANUAL_STATUSES: frozenset[str] = frozenset({
    EventStatus.DRAFT, EventStatus.SCHEDULED, EventStatus.CANCELLED,
    EventStatus.POSTPONED,
})

# No RSVPs once an event is in one of these
CLOSED_STATUSES: frozenset[str] = frozenset({
    EventStatus.CANCELLED, EventStatus.COMPLETED,
})

# Statuses the refresher may move to live or completed
_RUNNING_SOURCES: frozenset[str] = frozenset({
    EventStatus.SCHEDULED, EventStatus.ACTIVE,
})

# Every status the refresher may touch
AUTO_STATUSES: frozenset[str] = _RUNNING_SOURCES | {EventStatus.LIVE}


def compute_status(
    *,
    status: str,
    published: bool,
    starts_at: datetime,
    ends_at: datetime | None,
    rsvp_deadline: datetime | None,
    now: datetime,
    completed_after_hours: int = 4,
) -> str:
    """Return the status the event should have at *now*."""
    starts_at = as_utc(starts_at)
    ends_at = as_utc(ends_at)
    rsvp_deadline = as_utc(rsvp_deadline)

    if status in _RUNNING_SOURCES:
        if starts_at <= now and (ends_at is None or ends_at > now):
            status = EventStatus.LIVE.value

    if status in AUTO_STATUSES:
        if ends_at is not None:
            ended = ends_at < now
        else:
            ended = starts_at < now - timedelta(hours=completed_after_hours)
        if ended:
            status = EventStatus.COMPLETED.value

    upcoming = published and starts_at > now

    if status == EventStatus.SCHEDULED and upcoming:
        if rsvp_deadline is None or rsvp_deadline > now:
            status = EventStatus.ACTIVE.value

    if status in (EventStatus.SCHEDULED, EventStatus.ACTIVE) and upcoming:
        if rsvp_deadline is not None and rsvp_deadline < now:
            status = EventStatus.PENDING.value

    return str(status)


def rsvp_closed_reason(
    status: str, rsvp_deadline: datetime | None, now: datetime,
) -> str | None:
    """Explain why the event refuses RSVPs, or return None when it accepts them."""
    if status in CLOSED_STATUSES:
        return f"Event is {status}; RSVPs are closed"
    deadline = as_utc(rsvp_deadline)
    if deadline is not None and deadline < now:
        return "The RSVP deadline has passed"
    return None
